# models/section_models.py
"""Typed items that make up the body of each lesson section."""

from __future__ import annotations

from pydantic import Field

from .lesson_models import WireModel


class VocabularyItem(WireModel):
    """A vocabulary word with its meaning and example sentences."""

    word: str
    meaning: str = ""
    examples: list[str] = Field(default_factory=list)


class DialogueLine(WireModel):
    speaker: str
    text: str


class GrammarExercise(WireModel):
    prompt: str = ""
    answer: str = ""


class GrammarContent(WireModel):
    """Explanation and practice for one grammar point."""

    focus: str = ""
    rule: str = ""
    form: str = ""
    usage: str = ""
    examples: list[str] = Field(default_factory=list)
    exercises: list[GrammarExercise] = Field(default_factory=list)


class PronunciationWord(WireModel):
    word: str = ""
    ipa: str = ""
    tips: list[str] = Field(default_factory=list)
    practice_sentence: str = ""


class TongueTwister(WireModel):
    text: str = ""
    target_sounds: list[str] = Field(default_factory=list)
