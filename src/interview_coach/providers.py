"""Upstream AI providers, selected once from the configured API key."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Union

import requests
from openai import OpenAI, OpenAIError

from .errors import CredentialMissing
from .recording import ACCEPTED_ENCODINGS

logger = logging.getLogger(__name__)

OPENROUTER_KEY_PREFIX = "sk-or-"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

Message = Dict[str, Any]


class ProviderError(RuntimeError):
    """Raised when a provider request fails."""


@dataclass
class OpenRouterProvider:
    """OpenRouter: multimodal chat for transcription and for answers."""

    api_key: str = field(repr=False)
    base_url: str = OPENROUTER_BASE_URL
    timeout: Optional[float] = 120.0
    referer: Optional[str] = None
    title: str = "Interview Coach"

    name: ClassVar[str] = "openrouter"
    default_answer_model: ClassVar[str] = "openai/gpt-4o"
    transcription_model: ClassVar[str] = "openai/gpt-4o-audio-preview"
    accepted_encodings: ClassVar[frozenset] = ACCEPTED_ENCODINGS

    def chat(
        self,
        messages: List[Message],
        *,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Optional[str]:
        """Run a chat completion and return the first choice's text, if any."""
        endpoint = f"{self.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            response = requests.post(endpoint, json=payload, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.exception("OpenRouter request to %s failed", endpoint)
            raise ProviderError(f"OpenRouter request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("OpenRouter returned a non-JSON response") from exc

        if not isinstance(data, dict):
            raise ProviderError("OpenRouter returned an unexpected response")
        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise ProviderError(f"OpenRouter error: {message}")
        return _first_choice_content(data)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": self.title,
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        return headers


@dataclass
class OpenAIProvider:
    """OpenAI: Whisper for transcription, chat completions for answers."""

    api_key: str = field(repr=False)
    timeout: Optional[float] = 120.0
    client: Optional[OpenAI] = field(default=None, repr=False)

    name: ClassVar[str] = "openai"
    default_answer_model: ClassVar[str] = "gpt-4o"
    transcription_model: ClassVar[str] = "whisper-1"
    accepted_encodings: ClassVar[frozenset] = ACCEPTED_ENCODINGS

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = OpenAI(api_key=self.api_key, timeout=self.timeout)

    def chat(
        self,
        messages: List[Message],
        *,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Optional[str]:
        try:
            completion = self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as exc:
            logger.exception("OpenAI chat completion failed")
            raise ProviderError(f"OpenAI request failed: {exc}") from exc

        if not completion.choices:
            return None
        return completion.choices[0].message.content

    def transcribe_file(self, path: Path, language: str = "en") -> str:
        """Upload an audio file to the speech-to-text endpoint."""
        try:
            with path.open("rb") as handle:
                transcription = self.client.audio.transcriptions.create(
                    model=self.transcription_model,
                    file=handle,
                    language=language,
                )
        except OpenAIError as exc:
            logger.exception("OpenAI transcription failed")
            raise ProviderError(f"OpenAI request failed: {exc}") from exc
        return getattr(transcription, "text", "") or ""


Provider = Union[OpenRouterProvider, OpenAIProvider]


def select_provider(
    api_key: Optional[str],
    timeout: Optional[float] = 120.0,
    referer: Optional[str] = None,
    title: Optional[str] = None,
) -> Provider:
    """Return the provider matching the shape of ``api_key``."""
    key = (api_key or "").strip()
    if not key:
        raise CredentialMissing("API key is required for audio transcription and answers")
    if key.startswith(OPENROUTER_KEY_PREFIX):
        return OpenRouterProvider(
            api_key=key,
            timeout=timeout,
            referer=referer,
            title=title or OpenRouterProvider.title,
        )
    return OpenAIProvider(api_key=key, timeout=timeout)


def _first_choice_content(data: Dict[str, Any]) -> Optional[str]:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, list):
        # Some models return content as a list of typed parts.
        return "".join(part.get("text") or "" for part in content if isinstance(part, dict))
    return content if isinstance(content, str) else None
