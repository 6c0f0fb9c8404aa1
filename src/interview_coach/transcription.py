"""Speech-to-text adapters for the two upstream providers."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import TranscriptionFailed
from .providers import OpenAIProvider, OpenRouterProvider, Provider, ProviderError
from .recording import Recording
from .tempfiles import scoped_temp_file

logger = logging.getLogger(__name__)

TRANSCRIBE_INSTRUCTION = (
    "Please transcribe this audio file. Return only the transcribed text without any additional commentary."
)
TRANSCRIPTION_LANGUAGE = "en"


@dataclass
class TranscriptionResult:
    """Container for transcription outputs."""

    text: str
    language: Optional[str] = None
    raw: Optional[dict] = None


class SpeechToTextService(Protocol):
    """Interface for speech-to-text providers."""

    def transcribe(self, recording: Recording) -> TranscriptionResult:
        """Return the transcription for the given recording."""


class OpenRouterAudioTranscriber:
    """Transcribes by attaching the audio to a multimodal chat request."""

    def __init__(self, provider: OpenRouterProvider, max_tokens: int = 500, temperature: float = 0.1) -> None:
        self.provider = provider
        self.max_tokens = max_tokens
        self.temperature = temperature

    def transcribe(self, recording: Recording) -> TranscriptionResult:
        if recording.needs_transcoding(self.provider.accepted_encodings):
            raise TranscriptionFailed(
                f"{recording.encoding.value} audio must be converted before transcription"
            )

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": TRANSCRIBE_INSTRUCTION},
                    {
                        "type": "input_audio",
                        "input_audio": {
                            "data": base64.b64encode(recording.data).decode("ascii"),
                            "format": recording.encoding.format_tag,
                        },
                    },
                ],
            }
        ]
        try:
            content = self.provider.chat(
                messages,
                model=self.provider.transcription_model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except ProviderError as exc:
            raise TranscriptionFailed(str(exc)) from exc

        text = (content or "").strip()
        return TranscriptionResult(text=text, language=TRANSCRIPTION_LANGUAGE)


class OpenAIWhisperTranscriber:
    """Uploads the recording to OpenAI's dedicated speech-to-text endpoint."""

    def __init__(self, provider: OpenAIProvider, language: str = TRANSCRIPTION_LANGUAGE) -> None:
        self.provider = provider
        self.language = language

    def transcribe(self, recording: Recording) -> TranscriptionResult:
        with scoped_temp_file(suffix=recording.encoding.suffix, data=recording.data) as path:
            try:
                text = self.provider.transcribe_file(path, language=self.language)
            except ProviderError as exc:
                raise TranscriptionFailed(str(exc)) from exc
        return TranscriptionResult(text=text.strip(), language=self.language)


def build_transcriber(provider: Provider) -> SpeechToTextService:
    if isinstance(provider, OpenRouterProvider):
        return OpenRouterAudioTranscriber(provider)
    if isinstance(provider, OpenAIProvider):
        return OpenAIWhisperTranscriber(provider)
    raise ValueError(f"Unsupported provider: {provider!r}")
