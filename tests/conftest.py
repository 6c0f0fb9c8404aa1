from __future__ import annotations

import pytest

from interview_coach.config import API_KEY_VARIABLES
from interview_coach.recording import AudioEncoding, Recording


@pytest.fixture(autouse=True)
def _clear_api_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in API_KEY_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("INTERVIEW_COACH_ANSWER_MODEL", raising=False)
    monkeypatch.delenv("INTERVIEW_COACH_REQUEST_TIMEOUT", raising=False)


@pytest.fixture
def wav_recording() -> Recording:
    return Recording(data=b"RIFF\x24\x00\x00\x00WAVEfmt ", encoding=AudioEncoding.WAV, sample_rate=16_000)


@pytest.fixture
def webm_recording() -> Recording:
    return Recording(data=b"\x1a\x45\xdf\xa3webm-bytes", encoding=AudioEncoding.WEBM_OPUS, sample_rate=48_000)
