# tests/test_validators.py
import json

import pytest
from conftest import GOOD_RESPONSES, dialogue_response, vocabulary_response

from models import CEFRLevel, DialogueLine, VocabularyItem
from validators import VALIDATORS, get_validator, is_refusal
from validators.dialogue import vocabulary_used
from validators.vocabulary import examples_for_level


@pytest.mark.parametrize(
    "level,expected",
    [
        (CEFRLevel.A1, 5),
        (CEFRLevel.A2, 5),
        (CEFRLevel.B1, 4),
        (CEFRLevel.B2, 3),
        (CEFRLevel.C1, 2),
    ],
)
def test_examples_per_level(level, expected):
    assert examples_for_level(level) == expected


def test_registry_covers_every_section():
    assert set(VALIDATORS) == {
        "warmup",
        "vocabulary",
        "reading",
        "comprehension",
        "discussion",
        "dialogue",
        "grammar",
        "pronunciation",
        "wrapup",
    }
    with pytest.raises(KeyError):
        get_validator("unknown")


@pytest.mark.parametrize(
    "section", ["warmup", "vocabulary", "comprehension", "discussion", "dialogue", "grammar", "pronunciation", "wrapup"]
)
def test_good_responses_validate(section, shared_context):
    content, result = get_validator(section).evaluate(
        GOOD_RESPONSES[section], shared_context.difficulty_level, shared_context
    )
    assert result.is_valid, [issue.message for issue in result.errors]
    assert isinstance(content[0], str)
    assert len(content) > 1
    assert 0 <= result.score <= 100


def test_vocabulary_wrong_example_count(shared_context):
    validator = get_validator("vocabulary")
    content, result = validator.evaluate(vocabulary_response(2), CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert all(issue.type == "wrong_count" for issue in result.errors)
    assert all(issue.recoverable for issue in result.errors)
    assert isinstance(content[1], VocabularyItem)


def test_vocabulary_examples_must_use_word(shared_context):
    raw = json.dumps(
        [
            {"word": w, "meaning": "m", "examples": ["No match here."] * 4}
            for w in ("energy", "solar", "carbon", "climate", "policy")
        ]
    )
    _, result = get_validator("vocabulary").evaluate(raw, CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert {issue.type for issue in result.errors} == {"structural_error"}


def test_vocabulary_unparseable_response(shared_context):
    _, result = get_validator("vocabulary").evaluate("not json", CEFRLevel.B1, shared_context)
    assert not result.is_valid


def test_warmup_detects_content_assumptions(shared_context):
    raw = "\n".join(
        [
            "What happened to the engineers?",
            "According to the author, why is storage hard?",
            "What do you know about solar power?",
        ]
    )
    _, result = get_validator("warmup").evaluate(raw, CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert sum(1 for issue in result.errors if issue.type == "content_assumption") == 2


def test_warmup_needs_question_marks(shared_context):
    raw = "Talk about energy\nDescribe your home\nName a sport"
    _, result = get_validator("warmup").evaluate(raw, CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert any("question mark" in issue.message for issue in result.errors)


@pytest.mark.parametrize("level", list(CEFRLevel))
def test_discussion_requires_exactly_five(level, shared_context):
    questions = [f"What do you think about topic number {n}?" for n in range(1, 7)]
    validator = get_validator("discussion")
    _, six = validator.evaluate("\n".join(questions), level, shared_context)
    assert not six.is_valid
    _, five = validator.evaluate("\n".join(questions[:5]), level, shared_context)
    assert five.is_valid


def test_discussion_level_warnings_do_not_fail(shared_context):
    raw = "\n".join(f"What is your favourite kind of energy number {n}?" for n in range(5))
    _, result = get_validator("discussion").evaluate(raw, CEFRLevel.C1, shared_context)
    assert result.is_valid
    assert len(result.warnings) == 2


def test_dialogue_rules(shared_context):
    validator = get_validator("dialogue")
    content, result = validator.evaluate(dialogue_response(), CEFRLevel.B1, shared_context)
    assert result.is_valid
    assert isinstance(content[1], DialogueLine)

    _, short = validator.evaluate(dialogue_response(6), CEFRLevel.B1, shared_context)
    assert not short.is_valid

    repeated = dialogue_response().replace("Ben:", "Anna:", 1)
    _, same_speaker = validator.evaluate(repeated, CEFRLevel.B1, shared_context)
    assert any("consecutive" in issue.message for issue in same_speaker.errors)


def test_dialogue_requires_vocabulary(shared_context):
    lines = "\n".join(
        f"{'Anna' if n % 2 == 0 else 'Ben'}: We talked about the weather and the weekend plans today."
        for n in range(12)
    )
    _, result = get_validator("dialogue").evaluate(lines, CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert any("vocabulary" in issue.message for issue in result.errors)


def test_grammar_requires_five_exercises(shared_context):
    data = json.loads(GOOD_RESPONSES["grammar"])
    data["exercises"] = data["exercises"][:3]
    _, result = get_validator("grammar").evaluate(json.dumps(data), CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert any(issue.type == "wrong_count" for issue in result.errors)


def test_pronunciation_requires_tongue_twisters(shared_context):
    data = json.loads(GOOD_RESPONSES["pronunciation"])
    data["tongueTwisters"] = data["tongueTwisters"][:1]
    _, result = get_validator("pronunciation").evaluate(json.dumps(data), CEFRLevel.B1, shared_context)
    assert not result.is_valid


def test_reading_needs_paragraphs(shared_context):
    validator = get_validator("reading")
    _, result = validator.evaluate(GOOD_RESPONSES["reading"], CEFRLevel.B1, shared_context)
    assert not result.is_valid
    three = "\n\n".join([GOOD_RESPONSES["reading"]] * 3)
    _, result = validator.evaluate(three, CEFRLevel.B1, shared_context)
    assert result.is_valid


def test_refusal_is_unrecoverable(shared_context):
    raw = "I'm sorry, but I can't help with that request."
    assert is_refusal(raw)
    content, result = get_validator("discussion").evaluate(raw, CEFRLevel.B1, shared_context)
    assert result.score == 0
    assert result.has_unrecoverable_issue
    assert result.errors[0].type == "unsafe_content"
    assert len(content) == 1


@pytest.mark.parametrize(
    "level,expected",
    [
        (CEFRLevel.A1, 5),
        (CEFRLevel.A2, 5),
        (CEFRLevel.B1, 4),
        (CEFRLevel.B2, 3),
        (CEFRLevel.C1, 2),
    ],
)
def test_vocabulary_example_count_per_level(level, expected, shared_context):
    validator = get_validator("vocabulary")
    _, exact = validator.evaluate(vocabulary_response(expected), level, shared_context)
    assert exact.is_valid, [issue.message for issue in exact.errors]

    for wrong in (expected - 1, expected + 1):
        _, result = validator.evaluate(vocabulary_response(wrong), level, shared_context)
        assert not result.is_valid
        assert {issue.type for issue in result.errors} == {"wrong_count"}
        assert f"expected exactly {expected}" in result.errors[0].message


def test_pronunciation_non_list_fields_are_counted_not_raised(shared_context):
    raw = json.dumps({"words": 5, "tongueTwisters": "none"})
    content, result = get_validator("pronunciation").evaluate(raw, CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert [issue.type for issue in result.errors] == ["wrong_count", "wrong_count"]
    assert all(issue.recoverable for issue in result.errors)
    assert len(content) == 1


def test_grammar_non_list_exercises_are_counted_not_raised(shared_context):
    data = json.loads(GOOD_RESPONSES["grammar"])
    data["exercises"] = 3
    _, result = get_validator("grammar").evaluate(json.dumps(data), CEFRLevel.B1, shared_context)
    assert not result.is_valid
    assert any(issue.type == "wrong_count" for issue in result.errors)


def _lines(*texts):
    return [DialogueLine(speaker="Anna", text=text) for text in texts]


def test_dialogue_vocabulary_matches_whole_words():
    lines = _lines("We start early.", "The party was great.")
    assert vocabulary_used(lines, ["art", "part"]) == []


def test_dialogue_vocabulary_allows_inflections_and_phrases():
    lines = _lines(
        "New batteries hold energy for hours.",
        "Our town is recycling more and talking about climate change.",
    )
    used = vocabulary_used(lines, ["battery", "recycle", "climate change", "solar"])
    assert used == ["battery", "recycle", "climate change"]
