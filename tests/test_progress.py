# tests/test_progress.py
import json

import pytest

from models import CEFRLevel, LessonResult
from orchestration.progress import (
    ProgressReporter,
    complete_event,
    format_sse_event,
    progress_event,
)


@pytest.mark.asyncio
async def test_progress_is_clamped_and_monotonic():
    seen = []
    reporter = ProgressReporter(seen.append)
    await reporter.emit("start", 10, "initialization")
    await reporter.emit("back", 5, "validation")
    await reporter.emit("over", 150, "saving")
    assert [u.progress for u in seen] == [10, 10, 100]
    assert reporter.last_update.step == "over"


@pytest.mark.asyncio
async def test_async_sink_is_awaited():
    seen = []

    async def sink(update):
        seen.append(update.phase)

    reporter = ProgressReporter(sink)
    await reporter.emit("ctx", 20, "context")
    assert seen == ["context"]


@pytest.mark.asyncio
async def test_failing_sink_is_ignored():
    def sink(_update):
        raise RuntimeError("display crashed")

    reporter = ProgressReporter(sink)
    update = await reporter.emit("start", 5, "initialization")
    assert update.progress == 5
    assert reporter.history == [update]


def test_sse_wire_format():
    lesson = LessonResult(
        lesson_title="T", lesson_type="discussion", student_level=CEFRLevel.B1, target_language="english"
    )
    event = format_sse_event(complete_event(lesson))
    assert event.startswith("data: ")
    assert event.endswith("\n\n")
    payload = json.loads(event[len("data: "):])
    assert payload["type"] == "complete"
    assert payload["progress"] == 100
    assert payload["lesson"]["lessonTitle"] == "T"


@pytest.mark.asyncio
async def test_progress_event_payload():
    reporter = ProgressReporter()
    update = await reporter.emit("Writing paragraph 1 of 3...", 40, "reading", section="paragraph-1")
    assert progress_event(update) == {
        "type": "progress",
        "step": "Writing paragraph 1 of 3...",
        "progress": 40,
        "phase": "reading",
        "section": "paragraph-1",
    }
