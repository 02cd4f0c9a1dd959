# orchestration/section_orchestrator.py
"""Generate, validate and regenerate lesson sections in dependency order."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from config import GenerationConfig, settings
from core.cancellation import bounded_call, cancellable, check_cancelled
from core.exceptions import (
    GenerationCancelledError,
    SectionDependencyError,
    SectionRejectedError,
)
from core.llm_interface import TextGenerator, call_generator
from models import (
    ClassifiedError,
    RegenerationContext,
    SectionResult,
    SectionSpec,
    SharedContext,
    ValidationResult,
)
from prompt_renderer import render_prompt, section_template
from validators import SectionValidator, get_validator, is_refusal
from validators.dialogue import LINE_LENGTH_RANGES
from validators.reading import PARAGRAPH_WORD_RANGES
from validators.vocabulary import examples_for_level

from .error_classifier import ErrorClassifier
from .lesson_plan import COMPOSITE_SECTIONS
from .progress import ProgressReporter
from .quality_metrics import QualityMetricsTracker

logger = structlog.get_logger(__name__)

SECTIONS_PROGRESS_START = 25
SECTIONS_PROGRESS_END = 90


class SectionState(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    VALIDATING = "validating"
    REGENERATING = "regenerating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


@dataclass
class OrchestrationOutcome:
    """Everything the orchestrator produced for one session."""

    results: dict[str, SectionResult] = field(default_factory=dict)
    rejected: dict[str, ClassifiedError] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    states: dict[str, SectionState] = field(default_factory=dict)
    cancelled: bool = False


class SectionOrchestrator:
    """Runs every section of a lesson plan through generate, validate, regenerate.

    Independent sections run concurrently as asyncio tasks. A section waits for
    its dependencies and starts only once all of them were accepted. Model calls
    are bounded by a semaphore and a per-call timeout.
    """

    def __init__(
        self,
        generator: TextGenerator,
        config: GenerationConfig | None = None,
        classifier: ErrorClassifier | None = None,
        metrics: QualityMetricsTracker | None = None,
        progress: ProgressReporter | None = None,
        validators: dict[str, SectionValidator] | None = None,
        session_id: str = "session",
        max_concurrency: int | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or GenerationConfig.from_settings()
        self.classifier = classifier or ErrorClassifier(self.config)
        self.metrics = metrics or QualityMetricsTracker()
        self.progress = progress or ProgressReporter()
        self.validators = validators
        self.session_id = session_id
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.MAX_CONCURRENT_LLM_CALLS)
        self.states: dict[str, SectionState] = {}
        self.results: dict[str, SectionResult] = {}
        self._slots: dict[str, tuple[int, int]] = {}

    def _validator(self, name: str) -> SectionValidator:
        if self.validators is not None and name in self.validators:
            return self.validators[name]
        return get_validator(name)

    def _set_state(self, name: str, state: SectionState) -> None:
        self.states[name] = state
        logger.debug("Section state changed", section=name, state=state.value)

    async def run(
        self,
        plan: list[SectionSpec],
        context: SharedContext,
        cancel_event: asyncio.Event | None = None,
    ) -> OrchestrationOutcome:
        """Generate every section in ``plan`` and collect the outcome."""
        ordered = sorted(plan, key=lambda spec: (spec.priority, spec.name))
        self.states = {spec.name: SectionState.PENDING for spec in ordered}
        self.results = {}
        self._assign_progress_slots(ordered)

        rejected: dict[str, ClassifiedError] = {}
        finished = {spec.name: asyncio.Event() for spec in ordered}

        async def _run_one(spec: SectionSpec) -> None:
            try:
                for dependency in spec.dependencies:
                    if dependency in finished:
                        await cancellable(finished[dependency].wait(), cancel_event)
                result = await self.generate_section(spec, context, cancel_event)
                self.results[spec.name] = result
            except SectionDependencyError as exc:
                logger.warning("Section blocked", section=spec.name, missing=exc.missing)
                self._set_state(spec.name, SectionState.BLOCKED)
            except GenerationCancelledError:
                if self.states.get(spec.name) is not SectionState.ACCEPTED:
                    self._set_state(spec.name, SectionState.BLOCKED)
            except SectionRejectedError as exc:
                self._set_state(spec.name, SectionState.REJECTED)
                rejected[spec.name] = exc.classified or self.classifier.classify(
                    exc, {"section": spec.name, "recoverable": exc.recoverable}
                )
            except Exception as exc:
                logger.error(
                    "Unexpected error while generating section",
                    section=spec.name,
                    error=str(exc),
                    exc_info=True,
                )
                self._set_state(spec.name, SectionState.REJECTED)
                rejected[spec.name] = self.classifier.classify(
                    SectionRejectedError(
                        spec.name, f"{type(exc).__name__}: {exc}", recoverable=False
                    ),
                    {"section": spec.name, "recoverable": False},
                )
            finally:
                finished[spec.name].set()

        tasks = [asyncio.create_task(_run_one(spec), name=f"section-{spec.name}") for spec in ordered]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        cancelled = cancel_event is not None and cancel_event.is_set()
        return OrchestrationOutcome(
            results={spec.name: self.results[spec.name] for spec in ordered if spec.name in self.results},
            rejected={name: rejected[name] for name in (s.name for s in ordered) if name in rejected},
            skipped=[
                spec.name for spec in ordered if self.states[spec.name] is SectionState.BLOCKED
            ],
            states=dict(self.states),
            cancelled=cancelled,
        )

    def _assign_progress_slots(self, ordered: list[SectionSpec]) -> None:
        span = SECTIONS_PROGRESS_END - SECTIONS_PROGRESS_START
        width = span / max(len(ordered), 1)
        self._slots = {
            spec.name: (
                int(SECTIONS_PROGRESS_START + index * width),
                int(SECTIONS_PROGRESS_START + (index + 1) * width),
            )
            for index, spec in enumerate(ordered)
        }

    def check_dependencies(self, spec: SectionSpec) -> None:
        """Raise :class:`SectionDependencyError` unless every dependency was accepted."""
        missing = sorted(
            dep for dep in spec.dependencies if self.states.get(dep) is not SectionState.ACCEPTED
        )
        if missing:
            raise SectionDependencyError(spec.name, missing)

    async def generate_section(
        self,
        spec: SectionSpec,
        context: SharedContext,
        cancel_event: asyncio.Event | None = None,
    ) -> SectionResult:
        """Run the bounded generate, validate, regenerate loop for one section."""
        self.check_dependencies(spec)
        check_cancelled(cancel_event)
        name = spec.name
        validator = self._validator(name)
        start, end = self._slots.get(name, (SECTIONS_PROGRESS_START, SECTIONS_PROGRESS_END))
        started = time.monotonic()
        max_attempts = self.config.max_attempts

        best: tuple[list[Any], ValidationResult, int] | None = None
        feedback: RegenerationContext | None = None
        for attempt in range(1, max_attempts + 1):
            check_cancelled(cancel_event)
            self._set_state(name, SectionState.GENERATING)
            step = f"Generating {name}..." if attempt == 1 else f"Regenerating {name} (attempt {attempt})..."
            await self.progress.emit(step, start, name)

            if name in COMPOSITE_SECTIONS:
                content, validation = await self._generate_composite(
                    spec, context, validator, feedback, attempt, (start, end), cancel_event
                )
            else:
                raw = await self._call_model(
                    name, self._render(name, context, feedback), attempt, cancel_event
                )
                self._set_state(name, SectionState.VALIDATING)
                content, validation = validator.evaluate(raw, context.difficulty_level, context)

            logger.info(
                "Section validated",
                section=name,
                attempt=attempt,
                score=validation.score,
                valid=validation.is_valid,
                errors=len(validation.errors),
            )

            if validation.has_unrecoverable_issue:
                raise SectionRejectedError(
                    name,
                    "; ".join(issue.message for issue in validation.errors),
                    recoverable=False,
                    validation=validation,
                )

            if best is None or validation.score > best[1].score:
                best = (content, validation, attempt)

            if validation.is_valid:
                return await self._accept(name, content, validation, attempt, started, end)

            if attempt < max_attempts:
                self._set_state(name, SectionState.REGENERATING)
                self.metrics.record_regeneration(name)
                feedback = RegenerationContext(
                    attempt=attempt + 1,
                    previous_issues=tuple(validation.issues),
                    previous_score=validation.score,
                )

        if best is None:
            raise RuntimeError(f"No attempt was made for section '{name}'")
        content, validation, _best_attempt = best
        if self.config.accept_best_on_exhaustion:
            logger.warning(
                "Accepting best attempt with unresolved issues",
                section=name,
                score=validation.score,
                issues=[issue.message for issue in validation.errors],
            )
            return await self._accept(name, content, validation, max_attempts, started, end)

        raise SectionRejectedError(
            name,
            "; ".join(issue.message for issue in validation.errors) or "validation failed",
            recoverable=True,
            validation=validation,
        )

    async def _accept(
        self,
        name: str,
        content: list[Any],
        validation: ValidationResult,
        attempts: int,
        started: float,
        end_progress: int,
    ) -> SectionResult:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        result = SectionResult(
            section_name=name,
            content=content,
            quality_score=validation.score / 100,
            attempts_used=attempts,
            issues=list(validation.issues),
            generation_time_ms=elapsed_ms,
        )
        self.metrics.record_section(
            name,
            validation_score=validation.score,
            attempt_count=attempts,
            generation_time_ms=elapsed_ms,
            issue_count=len(validation.errors),
            warning_count=len(validation.warnings),
        )
        self._set_state(name, SectionState.ACCEPTED)
        self.results[name] = result
        await self.progress.emit(f"{name.capitalize()} section complete", end_progress, name)
        return result

    async def _generate_composite(
        self,
        spec: SectionSpec,
        context: SharedContext,
        validator: SectionValidator,
        feedback: RegenerationContext | None,
        attempt: int,
        slot: tuple[int, int],
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[Any], ValidationResult]:
        """Generate a section part by part, then validate the assembled text."""
        name = spec.name
        total = settings.READING_PARAGRAPHS
        start, end = slot
        paragraphs: list[str] = []
        for index in range(1, total + 1):
            check_cancelled(cancel_event)
            await self.progress.emit(
                f"Writing paragraph {index} of {total}...",
                start + (end - start) * index // (total + 1),
                name,
                section=f"paragraph-{index}",
            )
            prompt = self._render(
                name,
                context,
                feedback,
                template="sections/reading_paragraph.j2",
                previous_paragraphs=list(paragraphs),
                paragraph_index=index,
                paragraph_total=total,
            )
            raw = await self._call_model(name, prompt, attempt, cancel_event)
            if is_refusal(raw):
                self._set_state(name, SectionState.VALIDATING)
                return validator.evaluate(raw, context.difficulty_level, context)
            paragraph = " ".join(raw.split())
            if paragraph:
                paragraphs.append(paragraph)
        self._set_state(name, SectionState.VALIDATING)
        return validator.evaluate("\n\n".join(paragraphs), context.difficulty_level, context)

    def _render(
        self,
        name: str,
        context: SharedContext,
        feedback: RegenerationContext | None,
        template: str | None = None,
        **extra: Any,
    ) -> str:
        level = context.difficulty_level
        if name == "dialogue":
            min_words, max_words = LINE_LENGTH_RANGES[level]
        else:
            min_words, max_words = PARAGRAPH_WORD_RANGES[level]
        reading = self.results.get("reading")
        prompt_ctx: dict[str, Any] = {
            "ctx": context,
            "source_excerpt": context.source_text,
            "vocabulary": list(context.key_vocabulary),
            "words_per_lesson": settings.VOCABULARY_WORDS_PER_LESSON,
            "examples_per_word": examples_for_level(level),
            "min_words": min_words,
            "max_words": max_words,
            "reading_text": "\n\n".join(str(p) for p in reading.items) if reading else "",
            "previous_paragraphs": [],
            "paragraph_index": 1,
            "paragraph_total": settings.READING_PARAGRAPHS,
            "feedback_lines": feedback.feedback_lines() if feedback else [],
            "attempt": feedback.attempt if feedback else 1,
            "previous_score": feedback.previous_score if feedback else 0,
        }
        prompt_ctx.update(extra)
        return render_prompt(template or section_template(name), prompt_ctx)

    async def _call_model(
        self,
        section: str,
        prompt: str,
        attempt: int,
        cancel_event: asyncio.Event | None,
    ) -> str:
        """Call the generator, retrying transport failures with backoff.

        Retries here do not use up validation attempts. Regeneration attempts
        use the regeneration temperature.
        """
        retry_key = f"{self.session_id}:{section}"
        retry_manager = self.classifier.retry_manager
        timeout = self.config.call_timeout_seconds
        temperature = (
            settings.TEMPERATURE_SECTION if attempt == 1 else settings.TEMPERATURE_REGENERATION
        )
        while True:
            check_cancelled(cancel_event)
            try:
                async with self._semaphore:
                    raw, usage = await bounded_call(
                        call_generator(self.generator, prompt, temperature=temperature),
                        timeout,
                        cancel_event,
                        section,
                    )
            except GenerationCancelledError:
                raise
            except Exception as exc:
                error: Exception = exc
            else:
                retry_manager.clear_retry_attempts(retry_key)
                self.metrics.record_usage(section, usage)
                return raw or ""

            classified = self.classifier.classify(
                error,
                {"section": section, "attempt": attempt, "session_id": retry_key},
            )
            if not classified.can_retry:
                retry_manager.clear_retry_attempts(retry_key)
                raise SectionRejectedError(
                    section,
                    classified.message,
                    recoverable=False,
                    classified=classified,
                ) from error
            delay_ms = retry_manager.get_retry_delay(retry_key)
            retry_manager.record_retry_attempt(retry_key)
            logger.warning(
                "Model call failed; retrying",
                section=section,
                error_type=classified.type.value,
                error_id=classified.error_id,
                delay_ms=delay_ms,
            )
            await cancellable(asyncio.sleep(delay_ms / 1000), cancel_event)

