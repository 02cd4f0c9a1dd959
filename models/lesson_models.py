# models/lesson_models.py
"""Core data models shared by the gate, validators and orchestrator."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialised with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CEFRLevel(str, Enum):
    """Ordinal proficiency tier used as a policy key."""

    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, CEFRLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str | CEFRLevel) -> CEFRLevel:
        """Return the level for ``value`` ignoring case and surrounding space."""
        if isinstance(value, CEFRLevel):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise ValueError(
                f"Unknown CEFR level '{value}'. Expected one of "
                f"{', '.join(level.value for level in cls)}."
            ) from exc


_LEVEL_ORDER = list(CEFRLevel)


class SharedContext(BaseModel):
    """Context extracted once per session and reused by every section."""

    model_config = ConfigDict(frozen=True)

    source_text: str
    difficulty_level: CEFRLevel
    key_vocabulary: tuple[str, ...]
    main_themes: tuple[str, ...] = ()
    summary: str = ""
    target_language: str = "english"
    lesson_type: str = "discussion"
    lesson_title: str = ""

    @field_validator("key_vocabulary")
    @classmethod
    def _vocabulary_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        seen: list[str] = []
        for word in value:
            cleaned = word.strip().lower()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        if not seen:
            raise ValueError("key_vocabulary must contain at least one word")
        return tuple(seen)


class SectionSpec(BaseModel):
    """A named section with its scheduling priority and prerequisites."""

    model_config = ConfigDict(frozen=True)

    name: str
    priority: int
    dependencies: frozenset[str] = frozenset()


class ValidationIssue(WireModel):
    """A single problem reported by the gate or a section validator."""

    type: str
    message: str
    severity: Literal["error", "warning"] = "error"
    suggested_action: str = ""
    recoverable: bool = True


class ValidationResult(WireModel):
    """Outcome of validating input text or a generated section."""

    is_valid: bool
    meets_minimum_quality: bool = True
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    score: int = Field(default=100, ge=0, le=100)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def has_unrecoverable_issue(self) -> bool:
        return any(not issue.recoverable for issue in self.errors)


class RegenerationContext(BaseModel):
    """Feedback from a failed attempt, passed explicitly into the next one."""

    model_config = ConfigDict(frozen=True)

    attempt: int
    previous_issues: tuple[ValidationIssue, ...] = ()
    previous_score: int = 0

    def feedback_lines(self) -> list[str]:
        lines: list[str] = []
        for issue in self.previous_issues:
            if issue.severity != "error":
                continue
            line = f"- {issue.message}"
            if issue.suggested_action:
                line += f" ({issue.suggested_action})"
            lines.append(line)
        return lines


class SectionResult(WireModel):
    """An accepted section and how it got there."""

    section_name: str
    content: list[Any]
    quality_score: float = Field(ge=0.0, le=1.0)
    attempts_used: int = Field(ge=1)
    issues: list[ValidationIssue] = Field(default_factory=list)
    generation_time_ms: int = 0

    @property
    def header(self) -> Any:
        return self.content[0] if self.content else None

    @property
    def items(self) -> list[Any]:
        return self.content[1:]


class SectionMetrics(WireModel):
    """Quality figures recorded for one section."""

    section_name: str
    validation_score: int
    attempt_count: int
    generation_time_ms: int
    issue_count: int
    warning_count: int
    regenerated: bool
    tokens_used: int = 0


class QualityMetrics(WireModel):
    """Session-wide quality counters. Snapshot only; the tracker owns state."""

    total_sections: int = 0
    total_regenerations: int = 0
    average_quality_score: float = 0.0
    total_generation_time: int = 0
    total_tokens: int = 0
    tokens_by_stage: dict[str, int] = Field(default_factory=dict)
    sections: list[SectionMetrics] = Field(default_factory=list)


class ProgressUpdate(WireModel):
    """A single progress event emitted during a session."""

    model_config = ConfigDict(frozen=True)

    step: str
    progress: int = Field(ge=0, le=100)
    phase: str
    section: str | None = None


class LessonResult(WireModel):
    """Assembled lesson returned to the caller at the end of a session."""

    lesson_title: str
    lesson_type: str
    student_level: CEFRLevel
    target_language: str
    sections: dict[str, SectionResult] = Field(default_factory=dict)
    rejected_sections: dict[str, dict[str, Any]] = Field(default_factory=dict)
    skipped_sections: list[str] = Field(default_factory=list)
    metrics: QualityMetrics = Field(default_factory=QualityMetrics)
    cancelled: bool = False
    saved: bool = False
    lesson_id: str | None = None

    def section_content(self, name: str) -> list[Any]:
        section = self.sections.get(name)
        return list(section.content) if section else []
