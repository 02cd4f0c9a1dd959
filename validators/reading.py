# validators/reading.py
"""Reading section: a level-adapted version of the source text."""

from __future__ import annotations

from typing import Any

from config import settings
from models import CEFRLevel, SharedContext
from utils.response_parsing import strip_code_fences
from utils.text_processing import contains_word, count_words, split_paragraphs

from .base import IssueCollector, SectionValidator

MIN_PARAGRAPH_WORDS = 15

PARAGRAPH_WORD_RANGES: dict[CEFRLevel, tuple[int, int]] = {
    CEFRLevel.A1: (30, 90),
    CEFRLevel.A2: (40, 110),
    CEFRLevel.B1: (50, 140),
    CEFRLevel.B2: (60, 170),
    CEFRLevel.C1: (70, 200),
}


class ReadingValidator(SectionValidator):
    section_name = "reading"
    instruction = (
        "Read the following text carefully. Pay attention to the highlighted "
        "vocabulary words:"
    )

    def __init__(self, required_paragraphs: int | None = None) -> None:
        self.required_paragraphs = required_paragraphs or settings.READING_PARAGRAPHS

    def parse_items(self, raw_text: str) -> list[Any]:
        return split_paragraphs(strip_code_fences(raw_text))

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        paragraphs = [str(p) for p in items if str(p).strip()]
        if len(paragraphs) < self.required_paragraphs:
            collector.error(
                "wrong_count",
                f"Expected at least {self.required_paragraphs} paragraphs, got {len(paragraphs)}",
                f"Write {self.required_paragraphs} paragraphs",
            )
        low, high = PARAGRAPH_WORD_RANGES[level]
        for index, paragraph in enumerate(paragraphs, start=1):
            words = count_words(paragraph)
            if words < MIN_PARAGRAPH_WORDS:
                collector.error(
                    "structural_error",
                    f"Paragraph {index} is too short ({words} words)",
                    "Write complete paragraphs",
                )
            elif not low <= words <= high:
                collector.warning(
                    "complexity_mismatch",
                    f"Paragraph {index} has {words} words, outside the {low}-{high} range for {level.value}",
                    f"Keep paragraphs between {low} and {high} words",
                )
        text = " ".join(paragraphs)
        used = [w for w in context.key_vocabulary if contains_word(text, w)]
        if len(used) < min(3, len(context.key_vocabulary)):
            collector.warning(
                "vocabulary_integration",
                f"Only {len(used)} lesson vocabulary words appear in the reading",
                "Use more of the lesson vocabulary in the text",
            )
        return 10 if len(paragraphs) >= self.required_paragraphs else 0
