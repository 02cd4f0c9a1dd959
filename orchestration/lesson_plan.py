# orchestration/lesson_plan.py
"""Which sections a lesson contains, in what order, and what each needs first."""

from __future__ import annotations

from models import SectionSpec

LESSON_TYPES: tuple[str, ...] = ("discussion", "grammar", "pronunciation", "travel", "business")

# The section that gives each lesson type its character.
TYPE_SECTIONS: dict[str, SectionSpec] = {
    "discussion": SectionSpec(name="discussion", priority=5, dependencies=frozenset({"reading"})),
    "grammar": SectionSpec(name="grammar", priority=5, dependencies=frozenset({"vocabulary"})),
    "pronunciation": SectionSpec(
        name="pronunciation", priority=5, dependencies=frozenset({"vocabulary"})
    ),
    "travel": SectionSpec(name="dialogue", priority=5, dependencies=frozenset({"vocabulary"})),
    "business": SectionSpec(name="dialogue", priority=5, dependencies=frozenset({"vocabulary"})),
}

COMMON_SECTIONS: tuple[SectionSpec, ...] = (
    SectionSpec(name="warmup", priority=1),
    SectionSpec(name="vocabulary", priority=2),
    SectionSpec(name="reading", priority=3, dependencies=frozenset({"vocabulary"})),
    SectionSpec(name="comprehension", priority=4, dependencies=frozenset({"reading"})),
)

WRAPUP = SectionSpec(name="wrapup", priority=6, dependencies=frozenset({"reading"}))

# Sections generated in several calls, one per part.
COMPOSITE_SECTIONS = frozenset({"reading"})


def normalise_lesson_type(lesson_type: str) -> str:
    value = (lesson_type or "").strip().lower()
    if value not in TYPE_SECTIONS:
        raise ValueError(
            f"Unknown lesson type '{lesson_type}'. Expected one of {', '.join(LESSON_TYPES)}."
        )
    return value


def build_lesson_plan(lesson_type: str) -> list[SectionSpec]:
    """Section specs for ``lesson_type`` sorted by priority."""
    lesson_type = normalise_lesson_type(lesson_type)
    plan = [*COMMON_SECTIONS, TYPE_SECTIONS[lesson_type], WRAPUP]
    return sorted(plan, key=lambda spec: (spec.priority, spec.name))
