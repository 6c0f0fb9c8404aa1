from __future__ import annotations

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import CoachSettings, load_environment, load_settings
from .encoding import encoding_for_mime
from .errors import EmptyInput, GenerationFailed, TranscodeFailed, TranscriptionFailed
from .pipeline import AnswerPipeline
from .recording import AudioEncoding, Recording

load_environment()

app = FastAPI(title="Interview Coach")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_SUFFIX_ENCODINGS = {encoding.suffix: encoding for encoding in AudioEncoding}


class TranscriptionResponse(BaseModel):
    text: str


class AnswerRequest(BaseModel):
    question: str


class AnswerResponse(BaseModel):
    answer: str
    model: str
    fallback: bool = False


def _require_pipeline() -> AnswerPipeline:
    settings: CoachSettings = load_settings()
    if not settings.has_valid_credential():
        raise HTTPException(status_code=401, detail="API key is required for audio transcription")
    return AnswerPipeline.from_settings(settings)


def _upload_encoding(file: UploadFile) -> AudioEncoding:
    if file.content_type:
        try:
            return encoding_for_mime(file.content_type)
        except ValueError:
            pass
    filename = (file.filename or "").lower()
    for suffix, encoding in _SUFFIX_ENCODINGS.items():
        if filename.endswith(suffix):
            return encoding
    raise HTTPException(
        status_code=415,
        detail=f"Unsupported audio type: {file.content_type or file.filename or 'unknown'}",
    )


@app.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe_audio(file: UploadFile = File(...)) -> TranscriptionResponse:
    encoding = _upload_encoding(file)
    pipeline = _require_pipeline()
    recording = Recording(data=await file.read(), encoding=encoding)

    try:
        transcription = await run_in_threadpool(pipeline.transcribe, recording)
    except TranscodeFailed as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except TranscriptionFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return TranscriptionResponse(text=transcription.text)


@app.post("/behavioral-answer", response_model=AnswerResponse)
def behavioral_answer(request: AnswerRequest) -> AnswerResponse:
    if not request.question.strip():
        raise HTTPException(status_code=400, detail="Question is empty")
    pipeline = _require_pipeline()

    try:
        result = pipeline.answer(request.question)
    except EmptyInput as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GenerationFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return AnswerResponse(answer=result.answer, model=result.model, fallback=result.is_fallback)
