"""Record -> transcribe -> answer session orchestration.

``AnswerPipeline`` runs the processing stages in order. ``PipelineOrchestrator``
owns the single recording session, its state machine, and the notices and
completion callback consumed by the presentation layer.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Protocol, Tuple

from .answering import AnswerResult, generate_behavioral_answer
from .config import CoachSettings, load_settings
from .errors import (
    CaptureUnavailable,
    CredentialMissing,
    EmptyInput,
    GenerationFailed,
    PipelineError,
    TranscodeFailed,
    TranscriptionFailed,
)
from .normalization import FfmpegTranscoder, FormatNormalizer
from .recording import Recording
from .transcription import SpeechToTextService, TranscriptionResult, build_transcriber

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.RECORDING}),
    SessionState.RECORDING: frozenset({SessionState.STOPPED, SessionState.IDLE}),
    SessionState.STOPPED: frozenset({SessionState.RECORDING, SessionState.PROCESSING, SessionState.IDLE}),
    SessionState.PROCESSING: frozenset({SessionState.COMPLETED, SessionState.FAILED}),
    SessionState.COMPLETED: frozenset({SessionState.RECORDING, SessionState.IDLE}),
    SessionState.FAILED: frozenset({SessionState.RECORDING, SessionState.PROCESSING, SessionState.IDLE}),
}


class InvalidTransition(RuntimeError):
    """Raised on a state change the session state machine does not allow."""


class Severity(str, Enum):
    SUCCESS = "success"
    NEUTRAL = "neutral"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Human-readable status message for the presentation layer."""

    title: str
    message: str
    severity: Severity
    kind: Optional[str] = None


@dataclass
class PipelineSession:
    state: SessionState = SessionState.IDLE
    recording: Optional[Recording] = None
    transcript: Optional[str] = None
    answer: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[BaseException] = None


class Recorder(Protocol):
    def start(self) -> Any:
        ...

    def stop(self, handle: Any) -> Recording:
        ...


NoticeCallback = Callable[[Notice], None]
CompletionCallback = Callable[[str, str], None]

_FAILURE_MESSAGES = {
    TranscodeFailed: "Failed to convert the recording to WAV. Please ensure FFmpeg is installed.",
    TranscriptionFailed: "Failed to transcribe audio. Please try again.",
    GenerationFailed: "Failed to generate an answer. Please try again.",
    CredentialMissing: "API key is required for audio transcription.",
    EmptyInput: "No speech detected in the recording",
}
_GENERIC_FAILURE = "Failed to process audio. Please try again."


class AnswerPipeline:
    """Normalize, transcribe and answer, strictly in that order."""

    def __init__(
        self,
        normalizer: FormatNormalizer,
        transcriber: SpeechToTextService,
        answer_fn: Callable[[str], AnswerResult],
        provider=None,
    ) -> None:
        self.normalizer = normalizer
        self.transcriber = transcriber
        self.answer_fn = answer_fn
        self.provider = provider

    @classmethod
    def from_settings(cls, settings: CoachSettings) -> "AnswerPipeline":
        provider = settings.provider
        return cls(
            normalizer=FormatNormalizer(FfmpegTranscoder(settings.ffmpeg_binary)),
            transcriber=build_transcriber(provider),
            answer_fn=partial(generate_behavioral_answer, provider=provider, model=settings.answer_model),
            provider=provider,
        )

    def transcribe(self, recording: Recording) -> TranscriptionResult:
        normalized = self.normalizer.normalize(recording, self.provider)
        return self.transcriber.transcribe(normalized)

    def answer(self, question: str) -> AnswerResult:
        return self.answer_fn(question)


class PipelineOrchestrator:
    """Drives one recording session through capture, transcription and answering."""

    def __init__(
        self,
        recorder: Recorder,
        load_settings: Callable[[], CoachSettings] = load_settings,
        build_pipeline: Callable[[CoachSettings], AnswerPipeline] = AnswerPipeline.from_settings,
        on_notice: Optional[NoticeCallback] = None,
        on_transcription_complete: Optional[CompletionCallback] = None,
    ) -> None:
        self.session = PipelineSession()
        self._recorder = recorder
        self._load_settings = load_settings
        self._build_pipeline = build_pipeline
        self._on_notice = on_notice
        self._on_transcription_complete = on_transcription_complete
        self._handle: Any = None
        self._lock = threading.RLock()
        self._pending: List[Callable[[], None]] = []

    @property
    def state(self) -> SessionState:
        return self.session.state

    def start_recording(self) -> None:
        try:
            self._start_recording()
        finally:
            self._deliver()

    def stop_recording(self) -> None:
        try:
            self._stop_recording()
        finally:
            self._deliver()

    def generate_answer(self, background: bool = True) -> Optional[threading.Thread]:
        """Process the held recording; returns the worker thread when ``background``."""
        try:
            prepared = self._prepare_processing()
        finally:
            self._deliver()
        if prepared is None:
            return None

        pipeline, recording = prepared
        if not background:
            self._process(pipeline, recording)
            return None
        worker = threading.Thread(target=self._process, args=(pipeline, recording), daemon=True)
        worker.start()
        return worker

    def _start_recording(self) -> None:
        with self._lock:
            if self.session.state in (SessionState.RECORDING, SessionState.PROCESSING):
                logger.debug("Ignoring start request while %s", self.session.state.value)
                return

            self.session.recording = None
            try:
                handle = self._recorder.start()
            except Exception as exc:
                if not isinstance(exc, CaptureUnavailable):
                    logger.exception("Unexpected error while starting capture")
                if self.session.state is not SessionState.IDLE:
                    self._move_to(SessionState.IDLE)
                self._notify(
                    "Error",
                    "Failed to start recording. Please check microphone permissions.",
                    Severity.ERROR,
                    kind=CaptureUnavailable.__name__,
                )
                return

            self._handle = handle
            self._move_to(SessionState.RECORDING)
            self._notify("Recording", "Audio recording started", Severity.SUCCESS)
            if getattr(handle, "is_fallback", False):
                self._notify(
                    "Recording",
                    "Recording as WebM/Opus; it will be converted to WAV before transcription",
                    Severity.NEUTRAL,
                )

    def _stop_recording(self) -> None:
        with self._lock:
            if self.session.state is not SessionState.RECORDING:
                logger.debug("Ignoring stop request while %s", self.session.state.value)
                return

            handle, self._handle = self._handle, None
            try:
                recording = self._recorder.stop(handle)
            except Exception as exc:
                if not isinstance(exc, CaptureUnavailable):
                    logger.exception("Unexpected error while stopping capture")
                self._move_to(SessionState.IDLE)
                self._notify("Error", "Recording failed. Please try again.", Severity.ERROR, kind=CaptureUnavailable.__name__)
                return

            self.session.recording = recording
            self._move_to(SessionState.STOPPED)
            self._notify("Recording", "Audio recording stopped", Severity.NEUTRAL)

    def _prepare_processing(self) -> Optional[Tuple[AnswerPipeline, Recording]]:
        with self._lock:
            if self.session.state not in (SessionState.STOPPED, SessionState.FAILED):
                logger.debug("Ignoring generate request while %s", self.session.state.value)
                return None
            recording = self.session.recording
            if recording is None:
                logger.debug("Ignoring generate request without a recording")
                return None

            settings = self._load_settings()
            if not settings.has_valid_credential():
                self._notify(
                    "Error",
                    _FAILURE_MESSAGES[CredentialMissing],
                    Severity.ERROR,
                    kind=CredentialMissing.__name__,
                )
                return None
            try:
                pipeline = self._build_pipeline(settings)
            except Exception as exc:
                self._report_failure(exc)
                return None

            self.session.transcript = None
            self.session.answer = None
            self.session.failed_stage = None
            self.session.error = None
            self._move_to(SessionState.PROCESSING)
            self._notify("Processing", "Transcribing audio and generating answer...", Severity.NEUTRAL)
            return pipeline, recording

    def _process(self, pipeline: AnswerPipeline, recording: Recording) -> None:
        try:
            self._run_stages(pipeline, recording)
        finally:
            self._deliver()

    def _run_stages(self, pipeline: AnswerPipeline, recording: Recording) -> None:
        try:
            question = pipeline.transcribe(recording).text
        except Exception as exc:
            self._fail(exc)
            return

        with self._lock:
            self.session.transcript = question
        if not question.strip():
            self._finish_without_speech()
            return

        try:
            result = pipeline.answer(question)
        except Exception as exc:
            self._fail(exc)
            return

        with self._lock:
            self.session.answer = result.answer
            self.session.recording = None
            self._move_to(SessionState.COMPLETED)
            if self._on_transcription_complete is not None:
                self._pending.append(partial(self._on_transcription_complete, question, result.answer))
            self._notify("Success", "Audio processed and answer generated!", Severity.SUCCESS)

    def _finish_without_speech(self) -> None:
        with self._lock:
            self.session.answer = ""
            self.session.recording = None
            self._move_to(SessionState.COMPLETED)
            self._notify("Warning", _FAILURE_MESSAGES[EmptyInput], Severity.ERROR, kind=EmptyInput.__name__)

    def _fail(self, exc: Exception) -> None:
        with self._lock:
            self._move_to(SessionState.FAILED)
            self._report_failure(exc)

    def _report_failure(self, exc: Exception) -> None:
        if isinstance(exc, PipelineError):
            logger.error("%s during %s: %s", exc.kind, exc.stage, exc)
            kind = exc.kind
            self.session.failed_stage = exc.stage
            message = next(
                (text for error_type, text in _FAILURE_MESSAGES.items() if isinstance(exc, error_type)),
                _GENERIC_FAILURE,
            )
        else:
            logger.error("Unexpected pipeline error", exc_info=exc)
            kind = type(exc).__name__
            message = _GENERIC_FAILURE
        self.session.error = exc
        self._notify("Error", message, Severity.ERROR, kind=kind)

    def _move_to(self, target: SessionState) -> None:
        current = self.session.state
        if target not in _TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move from {current.value} to {target.value}")
        logger.debug("Session %s -> %s", current.value, target.value)
        self.session.state = target

    def _notify(self, title: str, message: str, severity: Severity, kind: Optional[str] = None) -> None:
        """Queue a notice; callbacks run from ``_deliver`` once the lock is released."""
        notice = Notice(title=title, message=message, severity=severity, kind=kind)
        logger.info("[%s] %s: %s", severity.value, title, message)
        if self._on_notice is not None:
            self._pending.append(partial(self._on_notice, notice))

    def _deliver(self) -> None:
        with self._lock:
            pending, self._pending = self._pending, []
        for callback in pending:
            try:
                callback()
            except Exception:
                logger.exception("Presentation callback failed")
