# tests/test_lesson_plan.py
import pytest

from orchestration.lesson_plan import (
    COMPOSITE_SECTIONS,
    build_lesson_plan,
    normalise_lesson_type,
)


@pytest.mark.parametrize(
    "lesson_type, specific",
    [
        ("discussion", "discussion"),
        ("grammar", "grammar"),
        ("pronunciation", "pronunciation"),
        ("travel", "dialogue"),
        ("business", "dialogue"),
    ],
)
def test_plan_sections(lesson_type, specific):
    names = [spec.name for spec in build_lesson_plan(lesson_type)]
    assert names[:4] == ["warmup", "vocabulary", "reading", "comprehension"]
    assert names[4] == specific
    assert names[-1] == "wrapup"


def test_plan_dependencies_are_acyclic_and_known():
    plan = build_lesson_plan("grammar")
    seen: set[str] = set()
    for spec in plan:
        assert spec.dependencies <= seen
        seen.add(spec.name)


def test_lesson_type_is_normalised():
    assert normalise_lesson_type("  Travel ") == "travel"


def test_unknown_lesson_type():
    with pytest.raises(ValueError, match="Unknown lesson type"):
        build_lesson_plan("poetry")


def test_reading_is_composite():
    assert "reading" in COMPOSITE_SECTIONS
