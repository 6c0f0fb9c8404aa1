"""Environment configuration utilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .providers import Provider, select_provider

logger = logging.getLogger(__name__)

API_KEY_VARIABLES = ("INTERVIEW_COACH_API_KEY", "OPENROUTER_API_KEY", "OPENAI_API_KEY")
DEFAULT_REQUEST_TIMEOUT = 120.0


def load_environment(dotenv_path: Optional[Path] = None) -> None:
    """Load environment variables from a .env file if present."""
    default_path = Path.cwd() / ".env"
    target = dotenv_path or default_path
    loaded = load_dotenv(dotenv_path=target, override=False)
    if loaded:
        logger.debug("Loaded environment variables from %s", target)
    else:
        logger.debug("No .env file found at %s (skipping)", target)

    if not _read_api_key():
        logger.warning(
            "No API key is set (%s). Transcription and answers will fail until one is configured.",
            ", ".join(API_KEY_VARIABLES),
        )


def is_valid_api_key_format(api_key: Optional[str]) -> bool:
    """OpenRouter keys start with 'sk-or-', OpenAI keys with 'sk-'."""
    return bool(api_key) and api_key.strip().startswith("sk-")


@dataclass
class CoachSettings:
    """Read-only configuration for one pipeline run."""

    api_key: Optional[str] = field(default=None, repr=False)
    answer_model: Optional[str] = None
    ffmpeg_binary: str = "ffmpeg"
    request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT
    openrouter_referer: Optional[str] = None
    openrouter_title: Optional[str] = None

    def has_valid_credential(self) -> bool:
        return is_valid_api_key_format(self.api_key)

    @cached_property
    def provider(self) -> Provider:
        """Provider chosen from the key shape; raises CredentialMissing without a key."""
        return select_provider(
            self.api_key,
            timeout=self.request_timeout,
            referer=self.openrouter_referer,
            title=self.openrouter_title,
        )


def load_settings() -> CoachSettings:
    """Build settings from the current environment."""
    return CoachSettings(
        api_key=_read_api_key(),
        answer_model=os.getenv("INTERVIEW_COACH_ANSWER_MODEL") or None,
        ffmpeg_binary=os.getenv("INTERVIEW_COACH_FFMPEG") or "ffmpeg",
        request_timeout=_parse_timeout(os.getenv("INTERVIEW_COACH_REQUEST_TIMEOUT")),
        openrouter_referer=os.getenv("OPENROUTER_REFERER") or None,
        openrouter_title=os.getenv("OPENROUTER_TITLE") or None,
    )


def _read_api_key() -> Optional[str]:
    for name in API_KEY_VARIABLES:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def _parse_timeout(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return DEFAULT_REQUEST_TIMEOUT
    if value.strip().lower() in {"none", "off", "0"}:
        return None
    try:
        timeout = float(value)
    except ValueError:
        logger.warning("Ignoring invalid INTERVIEW_COACH_REQUEST_TIMEOUT=%r", value)
        return DEFAULT_REQUEST_TIMEOUT
    return timeout if timeout > 0 else None
