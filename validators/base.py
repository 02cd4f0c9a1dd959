# validators/base.py
"""Shared machinery for section validators."""

from __future__ import annotations

import re
from typing import Any, ClassVar

import structlog

from models import CEFRLevel, SharedContext, ValidationIssue, ValidationResult

logger = structlog.get_logger(__name__)

REFUSAL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bI(?:'m| am) sorry,? (?:but )?I (?:can(?:no|')t|am unable to|won't)\b",
        r"^\s*I (?:cannot|can't|won't|am unable to) (?:help|assist|provide|create|generate|comply)",
        r"\bas an AI(?: language model)?\b",
        r"\bviolates? (?:the |our |my )?(?:content|usage|safety) polic(?:y|ies)\b",
        r"\b(?:blocked|flagged) (?:due to|for) safety\b",
    )
)


def is_refusal(raw_text: str) -> bool:
    """True when the response reads as a refusal or a safety block."""
    if not raw_text:
        return False
    head = raw_text.strip()[:400]
    return any(pattern.search(head) for pattern in REFUSAL_PATTERNS)


class IssueCollector:
    """Accumulates issues for one validation run and computes the score."""

    def __init__(self, error_penalty: int, warning_penalty: int = 5) -> None:
        self.error_penalty = error_penalty
        self.warning_penalty = warning_penalty
        self.issues: list[ValidationIssue] = []
        self.recommendations: list[str] = []

    def error(
        self,
        issue_type: str,
        message: str,
        suggested_action: str = "",
        recoverable: bool = True,
    ) -> None:
        self.issues.append(
            ValidationIssue(
                type=issue_type,
                message=message,
                severity="error",
                suggested_action=suggested_action,
                recoverable=recoverable,
            )
        )

    def warning(self, issue_type: str, message: str, suggested_action: str = "") -> None:
        self.issues.append(
            ValidationIssue(
                type=issue_type,
                message=message,
                severity="warning",
                suggested_action=suggested_action,
            )
        )
        if suggested_action and suggested_action not in self.recommendations:
            self.recommendations.append(suggested_action)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "warning")

    def result(self, bonus: int = 0, min_score: int = 0) -> ValidationResult:
        score = 100 - self.error_count * self.error_penalty
        score -= self.warning_count * self.warning_penalty
        score = max(0, min(100, score + bonus))
        return ValidationResult(
            is_valid=self.error_count == 0,
            meets_minimum_quality=score >= min_score,
            issues=list(self.issues),
            warnings=[i.message for i in self.issues if i.severity == "warning"],
            recommendations=list(self.recommendations),
            score=score,
        )


class SectionValidator:
    """Parses a raw model response into section content and validates it.

    Subclasses set ``section_name`` and ``instruction`` and implement
    :meth:`parse_items` and :meth:`check`.
    """

    section_name: ClassVar[str] = ""
    instruction: ClassVar[str] = ""
    error_penalty: ClassVar[int] = 20

    def parse(self, raw_text: str) -> list[Any]:
        """Return section content: the instruction header followed by items."""
        return [self.instruction, *self.parse_items(raw_text or "")]

    def parse_items(self, raw_text: str) -> list[Any]:
        raise NotImplementedError

    def validate(
        self, content: list[Any], level: CEFRLevel, context: SharedContext
    ) -> ValidationResult:
        collector = IssueCollector(self.error_penalty)
        items = list(content[1:]) if content else []
        bonus = self.check(items, level, context, collector)
        return collector.result(bonus=bonus)

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        """Record issues for ``items`` and return the completeness bonus."""
        raise NotImplementedError

    def evaluate(
        self, raw_text: str, level: CEFRLevel, context: SharedContext
    ) -> tuple[list[Any], ValidationResult]:
        """Parse and validate a raw response in one step."""
        if is_refusal(raw_text):
            logger.warning(
                "Model refused or blocked section output",
                section=self.section_name,
                snippet=(raw_text or "")[:120],
            )
            collector = IssueCollector(self.error_penalty)
            collector.error(
                "unsafe_content",
                f"The {self.section_name} response was refused or blocked by the model.",
                "Choose different source content or select a different passage.",
                recoverable=False,
            )
            result = collector.result()
            return [self.instruction], result.model_copy(update={"score": 0})
        content = self.parse(raw_text)
        return content, self.validate(content, level, context)


def question_format_issues(
    questions: list[str], collector: IssueCollector, min_length: int = 10
) -> None:
    """Shared format rules for question lists."""
    for index, question in enumerate(questions, start=1):
        text = str(question).strip()
        if not text:
            collector.error(
                "structural_error",
                f"Question {index} is empty",
                "Provide a valid question",
            )
            continue
        if not text.endswith("?"):
            collector.error(
                "structural_error",
                f"Question {index} doesn't end with a question mark",
                "Add a question mark at the end",
            )
        if len(text) < min_length:
            collector.error(
                "structural_error",
                f"Question {index} is too short ({len(text)} characters)",
                f"Questions should be at least {min_length} characters long",
            )
