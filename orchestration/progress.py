# orchestration/progress.py
"""Best-effort progress reporting and the event-stream wire format."""

from __future__ import annotations

import inspect
import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from models import LessonResult, ProgressUpdate

logger = structlog.get_logger(__name__)

ProgressSink = Callable[[ProgressUpdate], Awaitable[None] | None]


class ProgressReporter:
    """Emits non-decreasing progress updates to an optional caller sink.

    Sink failures are logged and never propagate.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self.sink = sink
        self.last_update: ProgressUpdate | None = None
        self.history: list[ProgressUpdate] = []

    @property
    def current(self) -> int:
        return self.last_update.progress if self.last_update else 0

    async def emit(
        self, step: str, progress: int, phase: str, section: str | None = None
    ) -> ProgressUpdate:
        clamped = max(self.current, min(100, max(0, int(progress))))
        update = ProgressUpdate(step=step, progress=clamped, phase=phase, section=section)
        self.last_update = update
        self.history.append(update)
        if self.sink is None:
            return update
        try:
            result = self.sink(update)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning(
                "Progress sink raised; continuing",
                phase=phase,
                progress=clamped,
                error=str(exc),
            )
        return update


def format_sse_event(payload: dict[str, Any]) -> str:
    """Serialise one event as ``data: <json>\\n\\n``."""
    return f"data: {json.dumps(payload, default=str)}\n\n"


def progress_event(update: ProgressUpdate) -> dict[str, Any]:
    return {"type": "progress", **update.to_wire()}


def complete_event(lesson: LessonResult, step: str = "Lesson generated successfully") -> dict[str, Any]:
    return {"type": "complete", "step": step, "progress": 100, "lesson": lesson.to_wire()}
