"""FastAPI APIs for video transcription and transcript text tasks."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from video_insight.config import Settings, load_settings
from video_insight.errors import MissingFieldError, classify_error
from video_insight.pipeline import TranscriptPipeline, check_video_extension
from video_insight.text_generator import GeminiTextGenerator
from video_insight.transcription import SpeechTranscriber

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Provider-backed capabilities shared by the endpoints."""

    pipeline: TranscriptPipeline
    generator: GeminiTextGenerator


def build_services(settings: Settings) -> Services:
    transcriber = SpeechTranscriber(
        api_key=settings.speech_api_key,
        language=settings.speech_language,
        chunk_length_ms=settings.transcription_chunk_ms,
    )
    pipeline = TranscriptPipeline(
        transcriber,
        work_dir=settings.upload_dir,
        download_timeout=settings.download_timeout,
        max_download_bytes=settings.max_download_bytes,
    )
    generator = GeminiTextGenerator(api_key=settings.gemini_api_key, model=settings.gemini_model)
    return Services(pipeline=pipeline, generator=generator)


class ProcessVideoRequest(BaseModel):
    videoUrl: Optional[str] = None


class TextRequest(BaseModel):
    text: Optional[str] = None


class QARequest(BaseModel):
    context: Optional[str] = None
    question: Optional[str] = None


class TranslateRequest(BaseModel):
    text: Optional[str] = None
    targetLanguage: Optional[str] = None


class SearchRequest(BaseModel):
    query: Optional[str] = None


def _require(message: str, *values: Optional[str]) -> None:
    if any(not (v or "").strip() for v in values):
        raise MissingFieldError(message)


def error_response(headline: str, exc: BaseException) -> JSONResponse:
    """The one place failures become ``{error, details}`` responses."""
    classified = classify_error(exc)
    if classified.status >= 500:
        logger.exception("%s: %s", headline, classified.message, exc_info=exc)
    else:
        logger.info("%s: %s", headline, classified.message)
    return JSONResponse(
        status_code=classified.status,
        content={"error": headline, "details": classified.message},
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        settings: Validated settings (loaded from the environment if omitted).
        services: Provider capabilities (built from settings if omitted).
    """
    if services is None:
        settings = settings or load_settings()
        services = build_services(settings)
    origins = list(settings.allowed_origins) if settings else ["*"]

    app = FastAPI(
        title="Video Insight API",
        description=(
            "APIs for:\n"
            "- Video transcription (upload or remote URL)\n"
            "- Summaries, quizzes, Q&A and translation using Gemini\n"
        ),
        version="1.0.0",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})

    @app.get("/", response_class=PlainTextResponse)
    async def health():
        return "Server is running"

    @app.post("/api/transcribe")
    async def transcribe(
        video: Optional[UploadFile] = File(default=None),
        services: Services = Depends(get_services),
    ):
        if video is None:
            return error_response("No video file uploaded.", MissingFieldError("Form field 'video' is required"))
        try:
            check_video_extension(video.filename or "")
        except Exception as e:
            return error_response("Invalid file type", e)

        logger.info("transcribe request: filename=%s", video.filename)
        try:
            content = await video.read()
            result = await services.pipeline.transcribe_upload(video.filename or "", content)
        except Exception as e:
            return error_response("Failed to transcribe video.", e)
        return {"transcript": result.transcript}

    @app.post("/api/process-vimeo")
    async def process_vimeo(payload: ProcessVideoRequest, services: Services = Depends(get_services)):
        logger.info("process-vimeo request: url=%s", payload.videoUrl)
        try:
            _require("videoUrl is required.", payload.videoUrl)
            result = await services.pipeline.process_remote(payload.videoUrl)
        except Exception as e:
            return error_response("Failed to process Vimeo video.", e)
        return {"transcript": result.transcript}

    @app.post("/api/summarize")
    async def summarize(payload: TextRequest, services: Services = Depends(get_services)):
        try:
            _require("Text is required for summarization.", payload.text)
            summary = await services.generator.summarize(payload.text)
        except Exception as e:
            return error_response("Failed to summarize text.", e)
        return {"summary": summary}

    @app.post("/api/generate-quiz")
    async def generate_quiz(payload: TextRequest, services: Services = Depends(get_services)):
        try:
            _require("Text is required for quiz generation.", payload.text)
            quiz = await services.generator.generate_quiz(payload.text)
        except Exception as e:
            return error_response("Failed to generate quiz.", e)
        return {"quiz": quiz.to_json()}

    @app.post("/api/qa")
    async def qa(payload: QARequest, services: Services = Depends(get_services)):
        try:
            _require("Both context and question are required.", payload.context, payload.question)
            answer = await services.generator.answer_question(payload.context, payload.question)
        except Exception as e:
            return error_response("Failed to generate Q&A.", e)
        return {"answer": answer}

    @app.post("/api/translate")
    async def translate(payload: TranslateRequest, services: Services = Depends(get_services)):
        try:
            _require("Both text and targetLanguage are required.", payload.text, payload.targetLanguage)
            translated = await services.generator.translate(payload.text, payload.targetLanguage)
        except Exception as e:
            return error_response("Failed to translate text.", e)
        return {"translatedText": translated}

    @app.post("/api/search")
    async def search(payload: SearchRequest):
        # Placeholder until transcripts are indexed somewhere.
        try:
            _require("Query parameter is required for search.", payload.query)
        except Exception as e:
            return error_response("Failed to perform search.", e)
        results: list[dict[str, Any]] = [
            {"videoId": "video1", "snippet": f'Snippet from video1 containing "{payload.query}"'},
            {"videoId": "video2", "snippet": f'Snippet from video2 containing "{payload.query}"'},
        ]
        return {"results": results}

    return app
