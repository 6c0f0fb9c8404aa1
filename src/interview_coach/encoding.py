"""Choosing and producing the encoding for captured microphone audio."""

from __future__ import annotations

import io
import logging
import subprocess
from typing import Callable

import numpy as np
import soundfile as sf

from .errors import CaptureUnavailable
from .recording import AudioEncoding

logger = logging.getLogger(__name__)

PREFERRED_MIME_TYPES = ("audio/mp3", "audio/wav", "audio/wave", "audio/x-wav")
FALLBACK_MIME_TYPE = "audio/webm;codecs=opus"

# libsndfile (format, subtype) pairs for the preferred mime types.
_SOUNDFILE_FORMATS = {
    "audio/mp3": ("MP3", "MPEG_LAYER_III"),
    "audio/wav": ("WAV", "PCM_16"),
    "audio/wave": ("WAV", "PCM_16"),
    "audio/x-wav": ("WAV", "PCM_16"),
}

_MIME_ENCODINGS = {
    "audio/mp3": AudioEncoding.MP3,
    "audio/mpeg": AudioEncoding.MP3,
    "audio/wav": AudioEncoding.WAV,
    "audio/wave": AudioEncoding.WAV,
    "audio/x-wav": AudioEncoding.WAV,
    "audio/webm": AudioEncoding.WEBM_OPUS,
}


def soundfile_supports(mime_type: str) -> bool:
    """Return True when the bundled libsndfile can write ``mime_type``."""
    pair = _SOUNDFILE_FORMATS.get(mime_type)
    if pair is None:
        return False
    fmt, subtype = pair
    if fmt not in sf.available_formats():
        return False
    return subtype in sf.available_subtypes(fmt)


def select_mime_type(is_supported: Callable[[str], bool] = soundfile_supports) -> str:
    """Pick the first supported preferred mime type, else the WebM/Opus fallback."""
    for mime_type in PREFERRED_MIME_TYPES:
        if is_supported(mime_type):
            return mime_type
    logger.info("No preferred encoding available; falling back to %s", FALLBACK_MIME_TYPE)
    return FALLBACK_MIME_TYPE


def encoding_for_mime(mime_type: str) -> AudioEncoding:
    """Map a (possibly parameterised) mime type onto an ``AudioEncoding``."""
    base = mime_type.split(";", 1)[0].strip().lower()
    try:
        return _MIME_ENCODINGS[base]
    except KeyError:
        raise ValueError(f"Unsupported audio mime type: {mime_type}") from None


def encode_pcm(
    audio: np.ndarray,
    sample_rate: int,
    mime_type: str,
    ffmpeg_binary: str = "ffmpeg",
) -> bytes:
    """Encode float PCM frames of shape (frames, channels) as ``mime_type``."""
    if mime_type in _SOUNDFILE_FORMATS:
        fmt, subtype = _SOUNDFILE_FORMATS[mime_type]
        buffer = io.BytesIO()
        sf.write(buffer, audio, samplerate=sample_rate, format=fmt, subtype=subtype)
        return buffer.getvalue()
    if mime_type == FALLBACK_MIME_TYPE:
        return _encode_webm_opus(audio, sample_rate, ffmpeg_binary)
    raise ValueError(f"Unsupported audio mime type: {mime_type}")


def _encode_webm_opus(audio: np.ndarray, sample_rate: int, ffmpeg_binary: str) -> bytes:
    channels = audio.shape[1] if audio.ndim > 1 else 1
    try:
        process = subprocess.run(
            [
                ffmpeg_binary,
                "-hide_banner",
                "-loglevel",
                "error",
                "-f",
                "f32le",
                "-ar",
                str(sample_rate),
                "-ac",
                str(channels),
                "-i",
                "pipe:0",
                "-c:a",
                "libopus",
                "-f",
                "webm",
                "pipe:1",
            ],
            input=audio.astype("<f4").tobytes(),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )
    except (FileNotFoundError, subprocess.CalledProcessError) as exc:
        raise CaptureUnavailable(
            "Unable to encode the recording as WebM/Opus; ensure ffmpeg is installed"
        ) from exc
    return process.stdout
