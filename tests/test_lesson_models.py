# tests/test_lesson_models.py
import pytest
from pydantic import ValidationError

from models import (
    CEFRLevel,
    LessonResult,
    ProgressUpdate,
    RegenerationContext,
    SectionResult,
    SharedContext,
    ValidationIssue,
)


def test_cefr_levels_are_ordered():
    assert CEFRLevel.A1 < CEFRLevel.A2 < CEFRLevel.B1 < CEFRLevel.B2 < CEFRLevel.C1
    assert CEFRLevel.C1 >= CEFRLevel.B2
    assert sorted([CEFRLevel.C1, CEFRLevel.A1, CEFRLevel.B1]) == [
        CEFRLevel.A1,
        CEFRLevel.B1,
        CEFRLevel.C1,
    ]


def test_cefr_parse_is_case_insensitive():
    assert CEFRLevel.parse(" b2 ") is CEFRLevel.B2
    assert CEFRLevel.parse(CEFRLevel.A2) is CEFRLevel.A2
    with pytest.raises(ValueError, match="Unknown CEFR level"):
        CEFRLevel.parse("C2")


def test_shared_context_vocabulary_deduplicated_in_order():
    ctx = SharedContext(
        source_text="text",
        difficulty_level=CEFRLevel.B1,
        key_vocabulary=("Energy", "solar", "energy", " climate "),
    )
    assert ctx.key_vocabulary == ("energy", "solar", "climate")


def test_shared_context_rejects_empty_vocabulary():
    with pytest.raises(ValidationError):
        SharedContext(source_text="text", difficulty_level=CEFRLevel.B1, key_vocabulary=())


def test_shared_context_is_frozen(shared_context):
    with pytest.raises(ValidationError):
        shared_context.summary = "changed"


def test_section_result_bounds():
    with pytest.raises(ValidationError):
        SectionResult(section_name="warmup", content=["x"], quality_score=1.5, attempts_used=1)
    with pytest.raises(ValidationError):
        SectionResult(section_name="warmup", content=["x"], quality_score=0.5, attempts_used=0)


def test_section_result_header_and_items():
    result = SectionResult(
        section_name="warmup", content=["Header", "Q1?", "Q2?"], quality_score=0.9, attempts_used=1
    )
    assert result.header == "Header"
    assert result.items == ["Q1?", "Q2?"]


def test_regeneration_feedback_only_lists_errors():
    ctx = RegenerationContext(
        attempt=2,
        previous_issues=(
            ValidationIssue(type="wrong_count", message="Too few", suggested_action="Add more"),
            ValidationIssue(type="variety_issue", message="Samey", severity="warning"),
        ),
        previous_score=60,
    )
    assert ctx.feedback_lines() == ["- Too few (Add more)"]


def test_wire_models_use_camel_case():
    update = ProgressUpdate(step="Working", progress=40, phase="reading", section="paragraph-1")
    assert update.to_wire() == {
        "step": "Working",
        "progress": 40,
        "phase": "reading",
        "section": "paragraph-1",
    }
    lesson = LessonResult(
        lesson_title="T", lesson_type="discussion", student_level=CEFRLevel.B1, target_language="english"
    )
    wire = lesson.to_wire()
    assert wire["lessonTitle"] == "T"
    assert wire["studentLevel"] == "B1"
    assert "lessonId" not in wire
