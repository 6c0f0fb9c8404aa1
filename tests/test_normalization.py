from __future__ import annotations

from pathlib import Path

import pytest

from interview_coach.errors import TranscodeFailed
from interview_coach.normalization import FfmpegTranscoder, FormatNormalizer
from interview_coach.recording import AudioEncoding, Recording


class RecordingTranscoder:
    """Transcoder stub that remembers the paths it was handed."""

    def __init__(self, output: bytes = b"RIFF....WAVE", error: Exception | None = None) -> None:
        self.output = output
        self.error = error
        self.paths: list[Path] = []
        self.source_bytes: bytes | None = None

    def __call__(self, source: Path, destination: Path) -> None:
        self.paths.extend([source, destination])
        self.source_bytes = source.read_bytes()
        if self.error is not None:
            raise self.error
        destination.write_bytes(self.output)


@pytest.mark.parametrize("encoding", [AudioEncoding.WAV, AudioEncoding.MP3])
def test_accepted_encodings_pass_through_untouched(encoding: AudioEncoding) -> None:
    transcoder = RecordingTranscoder()
    recording = Recording(data=b"already-fine", encoding=encoding)

    result = FormatNormalizer(transcoder).normalize(recording)

    assert result is recording
    assert transcoder.paths == []


def test_webm_is_transcoded_to_wav_and_temp_files_removed(tmp_path, webm_recording) -> None:
    transcoder = RecordingTranscoder(output=b"RIFF-converted")

    result = FormatNormalizer(transcoder, temp_dir=tmp_path).normalize(webm_recording)

    assert result.encoding is AudioEncoding.WAV
    assert result.data == b"RIFF-converted"
    assert result.sample_rate == 16_000
    assert transcoder.source_bytes == webm_recording.data
    assert transcoder.paths[0].suffix == ".webm"
    assert transcoder.paths[1].suffix == ".wav"
    assert all(not path.exists() for path in transcoder.paths)


def test_transcoder_error_becomes_transcode_failed_and_cleans_up(tmp_path, webm_recording) -> None:
    transcoder = RecordingTranscoder(error=RuntimeError("codec exploded"))

    with pytest.raises(TranscodeFailed, match="codec exploded"):
        FormatNormalizer(transcoder, temp_dir=tmp_path).normalize(webm_recording)

    assert len(transcoder.paths) == 2
    assert all(not path.exists() for path in transcoder.paths)
    assert list(tmp_path.iterdir()) == []


def test_empty_output_is_rejected(tmp_path, webm_recording) -> None:
    transcoder = RecordingTranscoder(output=b"")

    with pytest.raises(TranscodeFailed):
        FormatNormalizer(transcoder, temp_dir=tmp_path).normalize(webm_recording)

    assert list(tmp_path.iterdir()) == []


def test_provider_accepted_encodings_are_respected(tmp_path) -> None:
    class WavOnlyProvider:
        accepted_encodings = frozenset({AudioEncoding.WAV})

    transcoder = RecordingTranscoder(output=b"RIFF-from-mp3")
    recording = Recording(data=b"ID3...", encoding=AudioEncoding.MP3)

    result = FormatNormalizer(transcoder, temp_dir=tmp_path).normalize(recording, WavOnlyProvider())

    assert result.encoding is AudioEncoding.WAV
    assert transcoder.paths[0].suffix == ".mp3"


def test_missing_ffmpeg_binary_raises_transcode_failed(tmp_path, webm_recording) -> None:
    normalizer = FormatNormalizer(FfmpegTranscoder(binary="definitely-not-ffmpeg-binary"), temp_dir=tmp_path)

    with pytest.raises(TranscodeFailed, match="not found"):
        normalizer.normalize(webm_recording)

    assert list(tmp_path.iterdir()) == []
