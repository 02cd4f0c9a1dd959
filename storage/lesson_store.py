# storage/lesson_store.py
"""Persistence boundary for generated lessons."""

from __future__ import annotations

import asyncio
import json
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from config import settings
from models import LessonResult

logger = structlog.get_logger(__name__)


class LessonStore(Protocol):
    """Saves a finished lesson and returns its identifier."""

    async def save(self, lesson: LessonResult, user_id: str | None = None) -> str: ...


class FileLessonStore:
    """Write lessons as JSON documents under the output directory."""

    def __init__(
        self,
        lessons_dir: str = os.path.join(settings.BASE_OUTPUT_DIR, settings.LESSONS_DIR),
    ) -> None:
        self.lessons_dir = lessons_dir
        os.makedirs(self.lessons_dir, exist_ok=True)

    async def save(self, lesson: LessonResult, user_id: str | None = None) -> str:
        lesson_id = uuid.uuid4().hex
        record = {
            "id": lesson_id,
            "userId": user_id,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "lesson": lesson.to_wire(),
        }
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._save_sync, lesson_id, record)
        logger.info("Saved lesson", lesson_id=lesson_id, title=lesson.lesson_title)
        return lesson_id

    def _save_sync(self, lesson_id: str, record: dict[str, Any]) -> None:
        path = self.path_for(lesson_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False, indent=2)

    def path_for(self, lesson_id: str) -> str:
        return os.path.join(self.lessons_dir, f"lesson_{lesson_id}.json")

    async def load(self, lesson_id: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_sync, lesson_id)

    def _load_sync(self, lesson_id: str) -> dict[str, Any]:
        with open(self.path_for(lesson_id), encoding="utf-8") as f:
            return json.load(f)
