# api/app.py
"""HTTP surface for lesson generation: a streaming and a plain JSON endpoint."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import Field

from core.exceptions import LessonGenerationError
from models import ErrorType
from models.lesson_models import WireModel
from orchestration.lesson_generator import LessonGenerator, stream_lesson_events

logger = structlog.get_logger(__name__)

ERROR_STATUS: dict[ErrorType, int] = {
    ErrorType.CONTENT_ISSUE: 400,
    ErrorType.PERMISSION_DENIED: 403,
    ErrorType.QUOTA_EXCEEDED: 429,
    ErrorType.NETWORK_ERROR: 503,
    ErrorType.UNKNOWN: 500,
}


class LessonRequest(WireModel):
    """Body accepted by both generation endpoints."""

    source_text: str = Field(min_length=1)
    lesson_type: str = Field(min_length=1)
    student_level: str = Field(min_length=1)
    target_language: str = Field(min_length=1)
    source_url: str | None = None
    content_metadata: dict[str, Any] | None = None

    def generate_kwargs(self) -> dict[str, Any]:
        metadata = dict(self.content_metadata or {})
        if self.source_url:
            metadata["sourceUrl"] = self.source_url
        return {
            "content": self.source_text,
            "level": self.student_level,
            "lesson_type": self.lesson_type,
            "target_language": self.target_language,
            "metadata": metadata,
        }


def error_response(exc: LessonGenerationError) -> JSONResponse:
    classified = exc.classified
    body = {
        "error": {
            "type": classified.type.value,
            "message": exc.user_message.message,
            "errorId": classified.error_id,
        },
        "userMessage": exc.user_message.to_wire(),
        "recoveryOptions": [option.to_wire() for option in classified.recovery_options],
        "progressState": exc.progress_state.to_wire() if exc.progress_state else None,
    }
    return JSONResponse(status_code=ERROR_STATUS[classified.type], content=body)


def create_app(lesson_generator: LessonGenerator | None = None) -> FastAPI:
    """Build the API around ``lesson_generator``."""
    generator = lesson_generator or LessonGenerator()
    app = FastAPI(title="Lesson Generator API")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/generate-lesson-stream")
    async def generate_lesson_stream(request: LessonRequest) -> StreamingResponse:
        logger.info(
            "Streaming lesson request",
            lesson_type=request.lesson_type,
            level=request.student_level,
            content_length=len(request.source_text),
        )
        return StreamingResponse(
            stream_lesson_events(generator, **request.generate_kwargs()),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.post("/api/generate-lesson")
    async def generate_lesson(request: LessonRequest) -> Any:
        try:
            lesson = await generator.generate(**request.generate_kwargs())
        except LessonGenerationError as exc:
            return error_response(exc)
        return {"lesson": lesson.to_wire()}

    return app


app = create_app()
