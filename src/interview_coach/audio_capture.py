"""Microphone capture utilities."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
import sounddevice as sd

from .encoding import FALLBACK_MIME_TYPE, encode_pcm, encoding_for_mime, select_mime_type, soundfile_supports
from .errors import CaptureUnavailable
from .recording import Recording

logger = logging.getLogger(__name__)


@dataclass
class AudioCaptureConfig:
    """Configuration options for microphone capture.

    ``sample_rate``, ``echo_cancellation`` and ``noise_suppression`` are
    requests; the host may substitute a different rate or ignore the flags.
    """

    sample_rate: int = 16_000
    channels: int = 1
    dtype: str = "float32"
    echo_cancellation: bool = True
    noise_suppression: bool = True
    ffmpeg_binary: str = "ffmpeg"


@dataclass
class CaptureHandle:
    """State of one running capture, returned by ``start``."""

    mime_type: str
    sample_rate: int
    channels: int
    stream: Optional[sd.InputStream] = None
    chunks: List[np.ndarray] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def is_fallback(self) -> bool:
        return self.mime_type == FALLBACK_MIME_TYPE


class StreamingMicrophoneRecorder:
    """Capture audio until stop() is invoked, buffering samples incrementally."""

    def __init__(
        self,
        config: Optional[AudioCaptureConfig] = None,
        is_type_supported: Callable[[str], bool] = soundfile_supports,
    ) -> None:
        self.config = config or AudioCaptureConfig()
        self._is_type_supported = is_type_supported
        self._active: Optional[CaptureHandle] = None

    def start(self) -> CaptureHandle:
        """Open the default input device and begin buffering audio."""
        if self._active is not None:
            raise RuntimeError("Recorder already running")

        if self.config.echo_cancellation or self.config.noise_suppression:
            logger.debug(
                "Requested echo_cancellation=%s noise_suppression=%s; applied by the host if supported",
                self.config.echo_cancellation,
                self.config.noise_suppression,
            )

        handle = CaptureHandle(
            mime_type=select_mime_type(self._is_type_supported),
            sample_rate=self._negotiate_sample_rate(),
            channels=self.config.channels,
        )
        try:
            handle.stream = sd.InputStream(
                samplerate=handle.sample_rate,
                channels=handle.channels,
                dtype=self.config.dtype,
                callback=lambda indata, frames, time, status: self._callback(handle, indata, status),
            )
            handle.stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            if handle.stream is not None:
                handle.stream.close()
            raise CaptureUnavailable(f"Unable to open microphone: {exc}") from exc

        self._active = handle
        logger.info("Recording at %s Hz as %s", handle.sample_rate, handle.mime_type)
        return handle

    def stop(self, handle: CaptureHandle) -> Recording:
        """Stop capturing, release the device, and return the encoded recording."""
        if handle.stream is None:
            raise RuntimeError("Recorder not running")

        try:
            handle.stream.stop()
        except sd.PortAudioError as exc:
            raise CaptureUnavailable(f"Microphone stream failed: {exc}") from exc
        finally:
            handle.stream.close()
            handle.stream = None
            if self._active is handle:
                self._active = None

        with handle.lock:
            if handle.chunks:
                audio = np.concatenate(handle.chunks, axis=0)
            else:
                audio = np.empty((0, handle.channels), dtype=self.config.dtype)
            handle.chunks = []

        data = encode_pcm(audio, handle.sample_rate, handle.mime_type, self.config.ffmpeg_binary)
        logger.info("Captured %d frames (%d bytes)", audio.shape[0], len(data))
        return Recording(
            data=data,
            encoding=encoding_for_mime(handle.mime_type),
            sample_rate=handle.sample_rate,
        )

    def is_running(self) -> bool:
        return self._active is not None

    def _negotiate_sample_rate(self) -> int:
        try:
            sd.check_input_settings(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype=self.config.dtype,
            )
        except (sd.PortAudioError, ValueError):
            try:
                device = sd.query_devices(kind="input")
            except (sd.PortAudioError, ValueError) as exc:
                raise CaptureUnavailable("No audio input device available") from exc
            fallback_rate = int(device["default_samplerate"])
            logger.info(
                "Input device rejected %s Hz; using its default of %s Hz",
                self.config.sample_rate,
                fallback_rate,
            )
            return fallback_rate
        return self.config.sample_rate

    def _callback(self, handle: CaptureHandle, indata: np.ndarray, status) -> None:
        if status:
            logger.warning("Input stream status: %s", status)
        with handle.lock:
            handle.chunks.append(indata.copy())


def save_recording(recording: Recording, output_path: str | Path) -> Path:
    """Persist an encoded recording so it can be played back."""
    path = Path(output_path)
    if not path.suffix:
        path = path.with_suffix(recording.encoding.suffix)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(recording.data)
    return path
