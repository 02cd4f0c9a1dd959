# orchestration/lesson_generator.py
"""Generation entrypoint: gate, authenticate, build context, run sections, save."""

from __future__ import annotations

import asyncio
import functools
import inspect
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import urlparse

import structlog

from config import GenerationConfig
from core.cancellation import check_cancelled
from core.exceptions import (
    ContentGateError,
    GenerationCancelledError,
    LessonGenerationError,
)
from core.llm_interface import TextGenerator, llm_service
from models import CEFRLevel, ClassifiedError, LessonResult, ValidationResult
from processing.content_gate import ContentGate
from processing.shared_context import SharedContextBuilder, contextual_title
from storage.lesson_store import LessonStore

from .error_classifier import ErrorClassifier
from .lesson_plan import build_lesson_plan, normalise_lesson_type
from .progress import (
    ProgressReporter,
    ProgressSink,
    complete_event,
    format_sse_event,
    progress_event,
)
from .quality_metrics import QualityMetricsTracker
from .section_orchestrator import SectionOrchestrator
from .token_accountant import CONTEXT_STAGE

logger = structlog.get_logger(__name__)

Authenticator = Callable[[dict[str, Any]], Awaitable[str | None] | str | None]


def session_key(metadata: dict[str, Any] | None) -> str:
    """Retry-counter key: the source domain when known, otherwise a fresh id."""
    source_url = (metadata or {}).get("sourceUrl") or (metadata or {}).get("source_url")
    if source_url:
        domain = urlparse(str(source_url)).netloc
        if domain:
            return domain
    return uuid.uuid4().hex


class LessonGenerator:
    """Runs one lesson generation session per :meth:`generate` call."""

    def __init__(
        self,
        generator: TextGenerator | None = None,
        config: GenerationConfig | None = None,
        store: LessonStore | None = None,
        authenticator: Authenticator | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.generator = generator or llm_service
        self.config = config or GenerationConfig.from_settings()
        self.store = store
        self.authenticator = authenticator
        self.classifier = classifier
        self.gate = ContentGate(self.config)

    async def generate(
        self,
        content: str,
        level: CEFRLevel | str,
        lesson_type: str,
        target_language: str | None = None,
        metadata: dict[str, Any] | None = None,
        on_progress: ProgressSink | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> LessonResult:
        """Generate a lesson from ``content``.

        Raises:
            LessonGenerationError: the session failed; carries the classified
                error, the user-facing message and the last progress update.
        """
        metadata = dict(metadata or {})
        language = (target_language or "english").strip().lower()
        progress = ProgressReporter(on_progress)
        metrics = QualityMetricsTracker()
        classifier = self.classifier or ErrorClassifier(self.config)
        session_id = session_key(metadata)
        request_context: dict[str, Any] = {
            "contentLength": len(content or ""),
            "lessonType": lesson_type,
            "studentLevel": str(getattr(level, "value", level)),
            "targetLanguage": language,
            "session_id": session_id,
        }

        try:
            await progress.emit("Initializing lesson generation...", 5, "initialization")
            try:
                student_level = CEFRLevel.parse(level)
                lesson_type = normalise_lesson_type(lesson_type)
            except ValueError as exc:
                raise ValueError(f"Invalid input: {exc}") from exc

            await progress.emit("Validating content...", 10, "validation")
            validation = self.gate.validate(content, language)
            if not validation.is_valid:
                raise ContentGateError(validation)

            await progress.emit("Authenticating...", 15, "authentication")
            user_id = await self._authenticate(metadata)

            await progress.emit("Analyzing content and building lesson context...", 20, "context")
            context = await SharedContextBuilder(
                self.generator,
                timeout=self.config.call_timeout_seconds,
                on_usage=functools.partial(metrics.record_usage, CONTEXT_STAGE),
            ).build(content, lesson_type, student_level, language, cancel_event)
            await progress.emit("Lesson context ready", 25, "context")
            check_cancelled(cancel_event)

            orchestrator = SectionOrchestrator(
                self.generator,
                config=self.config,
                classifier=classifier,
                metrics=metrics,
                progress=progress,
                session_id=session_id,
            )
            outcome = await orchestrator.run(build_lesson_plan(lesson_type), context, cancel_event)
        except LessonGenerationError:
            raise
        except GenerationCancelledError:
            logger.info("Generation cancelled before sections started")
            return LessonResult(
                lesson_title=contextual_title(content, lesson_type, student_level),
                lesson_type=lesson_type,
                student_level=student_level,
                target_language=language,
                metrics=metrics.snapshot(),
                cancelled=True,
            )
        except ContentGateError as exc:
            raise self._failure(classifier, exc, request_context, progress, exc.validation) from exc
        except Exception as exc:
            raise self._failure(classifier, exc, request_context, progress) from exc

        lesson = LessonResult(
            lesson_title=context.lesson_title,
            lesson_type=lesson_type,
            student_level=student_level,
            target_language=language,
            sections=outcome.results,
            rejected_sections={name: err.summary() for name, err in outcome.rejected.items()},
            skipped_sections=outcome.skipped,
            metrics=metrics.snapshot(),
            cancelled=outcome.cancelled,
        )
        metrics.log_report()

        if outcome.cancelled:
            logger.info(
                "Generation cancelled; returning accepted sections",
                accepted=list(outcome.results),
            )
            return lesson

        if not outcome.results or (self.config.strict_mode and outcome.rejected):
            first_error = next(iter(outcome.rejected.values()), None)
            raise self._failure(
                classifier,
                first_error.original_error if first_error else RuntimeError("No sections were generated"),
                request_context,
                progress,
                classified=first_error,
            )

        await progress.emit("Saving lesson...", 95, "saving")
        if self.store is not None:
            try:
                lesson.lesson_id = await self.store.save(lesson, user_id)
                lesson.saved = True
            except Exception as exc:
                logger.error("Error saving lesson", error=str(exc), exc_info=True)

        logger.info("Lesson generated", title=lesson.lesson_title, saved=lesson.saved)
        return lesson

    async def _authenticate(self, metadata: dict[str, Any]) -> str | None:
        if self.authenticator is None:
            return None
        user = self.authenticator(metadata)
        if inspect.isawaitable(user):
            user = await user
        if not user:
            raise PermissionError("Authentication required: permission denied")
        return str(user)

    def _failure(
        self,
        classifier: ErrorClassifier,
        error: BaseException,
        context: dict[str, Any],
        progress: ProgressReporter,
        validation: ValidationResult | None = None,
        classified: ClassifiedError | None = None,
    ) -> LessonGenerationError:
        classified = classified or classifier.classify(error, context)
        user_message = classifier.generate_user_message(classified)
        support = classifier.generate_support_message(classified)
        logger.error(
            "Lesson generation failed",
            error_id=classified.error_id,
            error_type=classified.type.value,
            support=support.to_wire(),
        )
        return LessonGenerationError(
            classified,
            user_message,
            progress_state=progress.last_update,
            validation=validation,
        )


async def stream_lesson_events(
    lesson_generator: LessonGenerator, **kwargs: Any
) -> AsyncIterator[str]:
    """Run a session and yield its progress, complete or error events."""
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    def _sink(update: Any) -> None:
        queue.put_nowait(format_sse_event(progress_event(update)))

    async def _run() -> None:
        try:
            lesson = await lesson_generator.generate(on_progress=_sink, **kwargs)
            queue.put_nowait(format_sse_event(complete_event(lesson)))
        except LessonGenerationError as exc:
            queue.put_nowait(format_sse_event(exc.to_event()))
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(_run())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event
        await task
    finally:
        if not task.done():
            task.cancel()
