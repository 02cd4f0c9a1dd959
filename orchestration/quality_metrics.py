# orchestration/quality_metrics.py
from __future__ import annotations

import logging
import threading

from models import QualityMetrics, SectionMetrics

from .token_accountant import TokenAccountant

logger = logging.getLogger(__name__)


class QualityMetricsTracker:
    """Session-scoped quality counters. Only the orchestrator mutates them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._total_sections = 0
            self._total_regenerations = 0
            self._total_generation_time = 0
            self._scores: list[int] = []
            self._sections: dict[str, SectionMetrics] = {}
            self.tokens = TokenAccountant()

    def record_regeneration(self, section_name: str) -> None:
        with self._lock:
            self._total_regenerations += 1
            total = self._total_regenerations
        logger.info(
            "Regenerating section '%s'. Regenerations this session: %s",
            section_name,
            total,
        )

    def record_section(
        self,
        section_name: str,
        validation_score: int,
        attempt_count: int,
        generation_time_ms: int,
        issue_count: int = 0,
        warning_count: int = 0,
    ) -> None:
        """Record an accepted section."""
        metrics = SectionMetrics(
            section_name=section_name,
            validation_score=validation_score,
            attempt_count=attempt_count,
            generation_time_ms=generation_time_ms,
            issue_count=issue_count,
            warning_count=warning_count,
            regenerated=attempt_count > 1,
            tokens_used=self.tokens.get_stage_total(section_name),
        )
        with self._lock:
            self._total_sections += 1
            self._total_generation_time += generation_time_ms
            self._scores.append(validation_score)
            self._sections[section_name] = metrics

    def record_usage(self, stage: str, usage: dict[str, int] | None) -> None:
        """Attribute one model call's token usage to ``stage``."""
        self.tokens.record_usage(stage, usage)

    def snapshot(self) -> QualityMetrics:
        """Return a read-only copy of the current counters."""
        with self._lock:
            average = sum(self._scores) / len(self._scores) if self._scores else 0.0
            return QualityMetrics(
                total_sections=self._total_sections,
                total_regenerations=self._total_regenerations,
                average_quality_score=round(average, 2),
                total_generation_time=self._total_generation_time,
                total_tokens=self.tokens.total,
                tokens_by_stage=dict(self.tokens.stage_totals),
                sections=list(self._sections.values()),
            )

    def log_report(self) -> None:
        metrics = self.snapshot()
        logger.info(
            "Quality report: %s sections, %s regenerations, average score %.1f, %sms total, %s tokens",
            metrics.total_sections,
            metrics.total_regenerations,
            metrics.average_quality_score,
            metrics.total_generation_time,
            metrics.total_tokens,
        )
        for section in metrics.sections:
            logger.info(
                "  %s: score=%s attempts=%s time=%sms issues=%s warnings=%s tokens=%s",
                section.section_name,
                section.validation_score,
                section.attempt_count,
                section.generation_time_ms,
                section.issue_count,
                section.warning_count,
                section.tokens_used,
            )
