from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fakes import StubAnswerer, StubTranscriber
from interview_coach import web_server
from interview_coach.answering import AnswerResult
from interview_coach.errors import GenerationFailed, TranscodeFailed
from interview_coach.pipeline import AnswerPipeline
from interview_coach.recording import AudioEncoding


class FailingNormalizer:
    def normalize(self, recording, provider=None):
        raise TranscodeFailed("ffmpeg not found; ensure ffmpeg is installed")


class RecordingNormalizer:
    def __init__(self) -> None:
        self.seen = []

    def normalize(self, recording, provider=None):
        self.seen.append(recording)
        return recording


@pytest.fixture
def client() -> TestClient:
    return TestClient(web_server.app)


@pytest.fixture
def use_pipeline(monkeypatch: pytest.MonkeyPatch):
    def install(pipeline: AnswerPipeline) -> None:
        monkeypatch.setenv("INTERVIEW_COACH_API_KEY", "sk-or-test")
        monkeypatch.setattr(web_server.AnswerPipeline, "from_settings", classmethod(lambda cls, settings: pipeline))

    return install


def test_transcribe_requires_credential(client: TestClient) -> None:
    response = client.post("/transcribe", files={"file": ("q.wav", b"RIFF", "audio/wav")})

    assert response.status_code == 401


def test_transcribe_returns_text(client: TestClient, use_pipeline) -> None:
    normalizer = RecordingNormalizer()
    use_pipeline(AnswerPipeline(normalizer, StubTranscriber(text="Why us?"), StubAnswerer()))

    response = client.post("/transcribe", files={"file": ("recording.webm", b"\x1a\x45\xdf\xa3", "audio/webm")})

    assert response.status_code == 200
    assert response.json() == {"text": "Why us?"}
    assert normalizer.seen[0].encoding is AudioEncoding.WEBM_OPUS


def test_transcribe_uses_filename_when_content_type_is_generic(client: TestClient, use_pipeline) -> None:
    normalizer = RecordingNormalizer()
    use_pipeline(AnswerPipeline(normalizer, StubTranscriber(text="x"), StubAnswerer()))

    response = client.post("/transcribe", files={"file": ("question.mp3", b"ID3", "application/octet-stream")})

    assert response.status_code == 200
    assert normalizer.seen[0].encoding is AudioEncoding.MP3


def test_transcribe_rejects_unknown_audio(client: TestClient, use_pipeline) -> None:
    use_pipeline(AnswerPipeline(RecordingNormalizer(), StubTranscriber(), StubAnswerer()))

    response = client.post("/transcribe", files={"file": ("clip.flac", b"fLaC", "audio/flac")})

    assert response.status_code == 415


def test_transcode_failure_maps_to_500(client: TestClient, use_pipeline) -> None:
    use_pipeline(AnswerPipeline(FailingNormalizer(), StubTranscriber(), StubAnswerer()))

    response = client.post("/transcribe", files={"file": ("recording.webm", b"webm", "audio/webm")})

    assert response.status_code == 500
    assert "ffmpeg" in response.json()["detail"]


def test_behavioral_answer(client: TestClient, use_pipeline) -> None:
    answerer = StubAnswerer(answer="Situation: ...")
    use_pipeline(AnswerPipeline(RecordingNormalizer(), StubTranscriber(), answerer))

    response = client.post("/behavioral-answer", json={"question": "Tell me about a failure."})

    assert response.status_code == 200
    assert response.json() == {"answer": "Situation: ...", "model": "stub-model", "fallback": False}
    assert answerer.questions == ["Tell me about a failure."]


def test_behavioral_answer_rejects_blank_question(client: TestClient, use_pipeline) -> None:
    answerer = StubAnswerer(answer="unused")
    use_pipeline(AnswerPipeline(RecordingNormalizer(), StubTranscriber(), answerer))

    response = client.post("/behavioral-answer", json={"question": "   "})

    assert response.status_code == 400
    assert answerer.questions == []


def test_generation_failure_maps_to_502(client: TestClient, use_pipeline) -> None:
    answerer = StubAnswerer(error=GenerationFailed("upstream 500"))
    use_pipeline(AnswerPipeline(RecordingNormalizer(), StubTranscriber(), answerer))

    response = client.post("/behavioral-answer", json={"question": "Why?"})

    assert response.status_code == 502


def test_fallback_answer_is_flagged(client: TestClient, use_pipeline) -> None:
    def fallback(question: str) -> AnswerResult:
        return AnswerResult(answer="I apologize...", model="gpt-4o", is_fallback=True)

    use_pipeline(AnswerPipeline(RecordingNormalizer(), StubTranscriber(), fallback))

    response = client.post("/behavioral-answer", json={"question": "Why?"})

    assert response.json()["fallback"] is True


def test_browser_preflight_is_allowed(client: TestClient) -> None:
    origin = "http://localhost:5173"

    response = client.options(
        "/behavioral-answer",
        headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in {origin, "*"}
