"""Bring recordings into a format transcription providers accept."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from .errors import TranscodeFailed
from .recording import ACCEPTED_ENCODINGS, AudioEncoding, Recording
from .tempfiles import scoped_temp_file

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16_000


class Transcoder(Protocol):
    """Converts the audio file at ``source`` into 16 kHz mono WAV at ``destination``."""

    def __call__(self, source: Path, destination: Path) -> None:
        ...


class FfmpegTranscoder:
    """Transcoder backed by the ffmpeg command line tool."""

    def __init__(self, binary: str = "ffmpeg", sample_rate: int = TARGET_SAMPLE_RATE) -> None:
        self.binary = binary
        self.sample_rate = sample_rate

    def __call__(self, source: Path, destination: Path) -> None:
        command = [
            self.binary,
            "-hide_banner",
            "-loglevel",
            "error",
            "-y",
            "-i",
            str(source),
            "-ac",
            "1",
            "-ar",
            str(self.sample_rate),
            "-acodec",
            "pcm_s16le",
            "-f",
            "wav",
            str(destination),
        ]
        try:
            subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=True)
        except FileNotFoundError as exc:
            raise TranscodeFailed(f"{self.binary} not found; ensure ffmpeg is installed") from exc
        except subprocess.CalledProcessError as exc:
            detail = exc.stderr.decode("utf-8", errors="replace").strip() if exc.stderr else ""
            raise TranscodeFailed(f"ffmpeg conversion failed: {detail or exc}") from exc


class FormatNormalizer:
    """Transcodes recordings the target provider cannot read into WAV."""

    def __init__(self, transcoder: Optional[Transcoder] = None, temp_dir: Optional[str | Path] = None) -> None:
        self.transcoder = transcoder or FfmpegTranscoder()
        self.temp_dir = temp_dir

    def normalize(self, recording: Recording, provider=None) -> Recording:
        accepted = getattr(provider, "accepted_encodings", ACCEPTED_ENCODINGS)
        if not recording.needs_transcoding(accepted):
            return recording

        logger.info("Converting %s recording (%d bytes) to WAV", recording.encoding.value, recording.size)
        with scoped_temp_file(
            suffix=recording.encoding.suffix, data=recording.data, directory=self.temp_dir
        ) as source, scoped_temp_file(suffix=".wav", directory=self.temp_dir) as destination:
            try:
                self.transcoder(source, destination)
            except TranscodeFailed:
                raise
            except Exception as exc:
                raise TranscodeFailed(f"Transcoding failed: {exc}") from exc

            try:
                data = destination.read_bytes()
            except OSError as exc:
                raise TranscodeFailed(f"Failed to read converted WAV file: {exc}") from exc

        if not data:
            raise TranscodeFailed("Transcoder produced an empty WAV file")
        sample_rate = getattr(self.transcoder, "sample_rate", TARGET_SAMPLE_RATE)
        return Recording(data=data, encoding=AudioEncoding.WAV, sample_rate=sample_rate)
