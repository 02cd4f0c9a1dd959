# validators/questions.py
"""Validators for the question-list sections."""

from __future__ import annotations

import re
from typing import Any

from models import CEFRLevel, SharedContext
from utils.response_parsing import split_list_lines

from .base import IssueCollector, SectionValidator, question_format_issues

CONTENT_ASSUMPTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), reason)
    for pattern, reason in (
        (r"what happened", "references specific events"),
        (r"in the (text|story|article|passage|reading)", "references the text directly"),
        (r"according to (the )?(text|story|article|author)", "references the text or author"),
        (r"the author (said|wrote|mentioned|stated|explained)", "references author statements"),
        (r"do you remember", "assumes prior knowledge of the content"),
        (r"what did .+ do", "references specific actions"),
        (r"why did .+ happen", "references specific events"),
        (r"when did", "references specific timing"),
        (r"who (was|were|did)", "references specific people"),
        (r"which (person|character|event)", "references specific content elements"),
        (r"the (story|text|article|passage) (says|mentions|describes|tells)", "references text content"),
        (r"in this (story|text|article)", "references the text"),
        (r"from the (story|text|article)", "references the text"),
    )
)

_QUESTION_STARTERS = (
    "what", "when", "where", "who", "why", "how", "do", "does", "did", "have",
    "has", "is", "are", "can", "could", "would", "should", "will", "which",
)
_ALLOWED_CAPITALISED = frozenset(
    """
    English Spanish French German Chinese Japanese Monday Tuesday Wednesday
    Thursday Friday Saturday Sunday January February March April May June July
    August September October November December
    """.split()
) | frozenset(word.capitalize() for word in _QUESTION_STARTERS) | {"I", "If", "In", "Imagine", "Think", "Tell", "Describe"}
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
_ANALYTICAL_RE = re.compile(r"why do you think|what factors|how might|to what extent|in what ways")
_TOO_COMPLEX_RE = re.compile(r"hypothetically|analy[sz]e|evaluate|implications")


class QuestionListValidator(SectionValidator):
    """Base for sections made of one question per line."""

    min_questions = 3

    def parse_items(self, raw_text: str) -> list[Any]:
        return [line for line in split_list_lines(raw_text) if not line.endswith(":")]

    def check_count(self, questions: list[str], collector: IssueCollector) -> int:
        if len(questions) < self.min_questions:
            collector.error(
                "wrong_count",
                f"Insufficient questions: expected at least {self.min_questions}, got {len(questions)}",
                f"Generate at least {self.min_questions} questions",
            )
            return 0
        return 10

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        questions = [str(item).strip() for item in items]
        bonus = self.check_count(questions, collector)
        question_format_issues(questions, collector)
        return bonus


class WarmupValidator(QuestionListValidator):
    """Warm-up questions must be answerable before reading the source."""

    section_name = "warmup"
    instruction = (
        "Have the following conversations or discussions with your tutor "
        "before reading the text:"
    )

    def check(self, items, level, context, collector):
        bonus = super().check(items, level, context, collector)
        for index, question in enumerate(items, start=1):
            text = str(question)
            for pattern, reason in CONTENT_ASSUMPTION_PATTERNS:
                if pattern.search(text):
                    collector.error(
                        "content_assumption",
                        f"Question {index} assumes content knowledge: {reason}",
                        "Rephrase to focus on personal experience or general knowledge",
                    )
                    break
            names = [
                word
                for word in re.findall(r"\b[A-Z][a-z]+\b", text)
                if word not in _ALLOWED_CAPITALISED
            ]
            if names:
                collector.warning(
                    "content_assumption",
                    f"Question {index} may contain proper names: {', '.join(names)}",
                    "Verify these are not content-specific names",
                )
            if _YEAR_RE.search(text):
                collector.warning(
                    "content_assumption",
                    f"Question {index} contains a specific year",
                    "Avoid referencing specific dates unless asking about general knowledge",
                )
        return bonus


class DiscussionValidator(QuestionListValidator):
    section_name = "discussion"
    instruction = "Discuss the following questions with your tutor:"
    required_questions = 5

    def check_count(self, questions, collector):
        if len(questions) != self.required_questions:
            collector.error(
                "wrong_count",
                f"Expected exactly {self.required_questions} questions, got {len(questions)}",
                f"Generate exactly {self.required_questions} questions",
            )
            return 0
        return 10

    def check(self, items, level, context, collector):
        bonus = super().check(items, level, context, collector)
        all_text = " ".join(str(q) for q in items).lower()
        if level >= CEFRLevel.B2 and not _ANALYTICAL_RE.search(all_text):
            collector.warning(
                "complexity_mismatch",
                f"Questions lack analytical depth for {level.value} level",
                "Include more analytical or evaluative questions",
            )
        if level <= CEFRLevel.A2 and _TOO_COMPLEX_RE.search(all_text):
            collector.warning(
                "complexity_mismatch",
                f"Questions may be too complex for {level.value} level",
                "Use simpler question structures",
            )
        starters = {str(q).strip().split(" ")[0].lower() for q in items if str(q).strip()}
        if items and len(starters) < 3:
            collector.warning(
                "variety_issue",
                "Limited question variety",
                "Use different question types (What, Why, How, etc.)",
            )
        return bonus


class ComprehensionValidator(QuestionListValidator):
    section_name = "comprehension"
    instruction = "Answer the following questions about the text:"
    min_questions = 5


class WrapupValidator(QuestionListValidator):
    """Wrap-up prompts may be questions or short reflective tasks."""

    section_name = "wrapup"
    instruction = "Reflect on the lesson with your tutor:"

    def check(self, items, level, context, collector):
        prompts = [str(item).strip() for item in items]
        bonus = self.check_count(prompts, collector)
        for index, prompt in enumerate(prompts, start=1):
            if len(prompt) < 10:
                collector.error(
                    "structural_error",
                    f"Prompt {index} is too short ({len(prompt)} characters)",
                    "Prompts should be at least 10 characters long",
                )
        return bonus
