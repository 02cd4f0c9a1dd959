# orchestration/cli_runner.py
"""Command-line runner for the lesson generator."""

from __future__ import annotations

import asyncio
import json

import structlog
import uvicorn

from config import settings
from core.exceptions import LessonGenerationError
from core.llm_interface import llm_service
from storage.lesson_store import FileLessonStore
from ui.rich_display import RichDisplayManager
from utils.logging import setup_logging

from orchestration.lesson_generator import LessonGenerator

logger = structlog.get_logger(__name__)


async def _run(
    text: str, level: str, lesson_type: str, language: str, output: str | None
) -> int:
    display = RichDisplayManager()
    generator = LessonGenerator(store=FileLessonStore())
    display.start(f"{lesson_type} ({level})")
    try:
        lesson = await generator.generate(
            text, level, lesson_type, target_language=language, on_progress=display
        )
    except LessonGenerationError as exc:
        logger.error(
            "Lesson generation failed: %s (error id %s)",
            exc.user_message.message,
            exc.error_id,
        )
        for step in exc.user_message.actionable_steps:
            logger.info("  - %s", step)
        return 1
    finally:
        display.stop()
        await llm_service.aclose()

    payload = json.dumps(lesson.to_wire(), ensure_ascii=False, indent=2)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(payload)
        logger.info("Lesson written to %s", output)
    else:
        print(payload)
    return 0


def run(
    file_path: str,
    level: str,
    lesson_type: str,
    language: str = "english",
    output: str | None = None,
) -> int:
    """Generate one lesson from ``file_path`` and print or save it."""
    setup_logging()
    with open(file_path, encoding="utf-8") as f:
        text = f.read()
    try:
        return asyncio.run(_run(text, level, lesson_type, language, output))
    except KeyboardInterrupt:
        logger.info("Lesson generation interrupted by user.")
        return 130


def serve(host: str | None = None, port: int | None = None) -> None:
    """Serve the HTTP API with uvicorn."""
    setup_logging()
    uvicorn.run(
        "api.app:app",
        host=host or settings.API_HOST,
        port=port or settings.API_PORT,
        log_config=None,
    )
