"""Recorded audio buffers and their encodings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AudioEncoding(str, Enum):
    """Encodings a recording can carry."""

    WEBM_OPUS = "webm-opus"
    WAV = "wav"
    MP3 = "mp3"

    @property
    def suffix(self) -> str:
        return _SUFFIXES[self]

    @property
    def format_tag(self) -> str:
        """Format name understood by transcription providers."""
        if self not in ACCEPTED_ENCODINGS:
            raise ValueError(f"{self.value} is not accepted by transcription providers")
        return self.value


_SUFFIXES = {
    AudioEncoding.WEBM_OPUS: ".webm",
    AudioEncoding.WAV: ".wav",
    AudioEncoding.MP3: ".mp3",
}

ACCEPTED_ENCODINGS = frozenset({AudioEncoding.WAV, AudioEncoding.MP3})


@dataclass(frozen=True)
class Recording:
    """An encoded audio buffer from a single recording session."""

    data: bytes
    encoding: AudioEncoding
    sample_rate: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def needs_transcoding(self, accepted=ACCEPTED_ENCODINGS) -> bool:
        return self.encoding not in accepted
