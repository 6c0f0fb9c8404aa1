"""Error kinds raised by the answer pipeline stages."""

from __future__ import annotations

from typing import Optional


class PipelineError(RuntimeError):
    """Base class for failures the orchestrator reports to the user."""

    stage: Optional[str] = None

    @property
    def kind(self) -> str:
        return type(self).__name__


class CaptureUnavailable(PipelineError):
    """Raised when the microphone cannot be opened or read."""

    stage = "capture"


class TranscodeFailed(PipelineError):
    """Raised when audio cannot be converted to a provider-accepted format."""

    stage = "normalize"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class TranscriptionFailed(PipelineError):
    """Raised when the transcription provider call fails."""

    stage = "transcribe"


class EmptyInput(PipelineError):
    """Raised when an answer is requested for a blank question."""

    stage = "generate"


class GenerationFailed(PipelineError):
    """Raised when the answer provider call fails."""

    stage = "generate"


class CredentialMissing(PipelineError):
    """Raised when no usable API key is configured."""

    stage = "configuration"
