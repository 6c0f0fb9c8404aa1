from __future__ import annotations

import numpy as np
import pytest

try:
    import sounddevice as sd
except OSError:  # PortAudio shared library missing on this host
    pytest.skip("PortAudio is not available", allow_module_level=True)

from interview_coach import audio_capture
from interview_coach.audio_capture import AudioCaptureConfig, StreamingMicrophoneRecorder, save_recording
from interview_coach.errors import CaptureUnavailable
from interview_coach.recording import AudioEncoding


class FakeInputStream:
    instances: list["FakeInputStream"] = []

    def __init__(self, samplerate, channels, dtype, callback, fail_on_start: bool = False) -> None:
        self.samplerate = samplerate
        self.channels = channels
        self.callback = callback
        self.fail_on_start = fail_on_start
        self.started = False
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self) -> None:
        if self.fail_on_start:
            raise sd.PortAudioError("Device unavailable")
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def feed(self, seconds: float) -> None:
        block = np.full((self.samplerate // 10, self.channels), 0.1, dtype="float32")
        for _ in range(int(seconds * 10)):
            self.callback(block, len(block), None, None)


@pytest.fixture(autouse=True)
def fake_device(monkeypatch: pytest.MonkeyPatch):
    FakeInputStream.instances = []
    monkeypatch.setattr(audio_capture.sd, "InputStream", FakeInputStream)
    monkeypatch.setattr(audio_capture.sd, "check_input_settings", lambda **kwargs: None)


def _wav_only(mime_type: str) -> bool:
    return mime_type == "audio/wav"


def test_start_stop_produces_wav_recording_and_releases_device() -> None:
    recorder = StreamingMicrophoneRecorder(AudioCaptureConfig(), is_type_supported=_wav_only)

    handle = recorder.start()
    stream = FakeInputStream.instances[0]
    stream.feed(seconds=3)
    recording = recorder.stop(handle)

    assert stream.closed
    assert not recorder.is_running()
    assert not handle.is_fallback
    assert recording.encoding is AudioEncoding.WAV
    assert recording.sample_rate == 16_000
    assert recording.data[:4] == b"RIFF"


def test_unsupported_sample_rate_uses_device_default(monkeypatch: pytest.MonkeyPatch) -> None:
    def reject(**kwargs):
        raise sd.PortAudioError("Invalid sample rate")

    monkeypatch.setattr(audio_capture.sd, "check_input_settings", reject)
    monkeypatch.setattr(audio_capture.sd, "query_devices", lambda kind: {"default_samplerate": 44100.0})
    recorder = StreamingMicrophoneRecorder(is_type_supported=_wav_only)

    handle = recorder.start()

    assert handle.sample_rate == 44_100
    recorder.stop(handle)


def test_open_failure_raises_capture_unavailable_and_closes_stream(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        audio_capture.sd,
        "InputStream",
        lambda **kwargs: FakeInputStream(fail_on_start=True, **kwargs),
    )
    recorder = StreamingMicrophoneRecorder(is_type_supported=_wav_only)

    with pytest.raises(CaptureUnavailable):
        recorder.start()

    assert FakeInputStream.instances[0].closed
    assert not recorder.is_running()


def test_stop_releases_device_even_when_stream_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = StreamingMicrophoneRecorder(is_type_supported=_wav_only)
    handle = recorder.start()
    stream = FakeInputStream.instances[0]

    def broken_stop() -> None:
        raise sd.PortAudioError("Stream lost")

    monkeypatch.setattr(stream, "stop", broken_stop)

    with pytest.raises(CaptureUnavailable):
        recorder.stop(handle)
    assert stream.closed
    assert not recorder.is_running()


def test_save_recording_adds_suffix(tmp_path) -> None:
    recorder = StreamingMicrophoneRecorder(is_type_supported=_wav_only)
    handle = recorder.start()
    recording = recorder.stop(handle)

    path = save_recording(recording, tmp_path / "question")

    assert path.suffix == ".wav"
    assert path.read_bytes() == recording.data
