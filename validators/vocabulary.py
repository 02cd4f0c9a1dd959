# validators/vocabulary.py
"""Vocabulary section: words with meanings and level-sized example sets."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from models import CEFRLevel, SharedContext, VocabularyItem
from utils.response_parsing import as_str_list, extract_json
from utils.text_processing import contains_word

from .base import IssueCollector, SectionValidator

logger = structlog.get_logger(__name__)

EXAMPLES_PER_LEVEL: dict[CEFRLevel, int] = {
    CEFRLevel.A1: 5,
    CEFRLevel.A2: 5,
    CEFRLevel.B1: 4,
    CEFRLevel.B2: 3,
    CEFRLevel.C1: 2,
}

MIN_WORDS = 5


def examples_for_level(level: CEFRLevel) -> int:
    return EXAMPLES_PER_LEVEL[CEFRLevel.parse(level)]


class VocabularyValidator(SectionValidator):
    section_name = "vocabulary"
    instruction = "Learn these key words and how they are used:"

    def parse_items(self, raw_text: str) -> list[Any]:
        data = extract_json(raw_text)
        if isinstance(data, dict):
            data = data.get("vocabulary") or data.get("words") or []
        if not isinstance(data, list):
            return []
        items: list[VocabularyItem] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            try:
                items.append(
                    VocabularyItem(
                        word=str(entry.get("word", "")).strip(),
                        meaning=str(entry.get("meaning") or entry.get("definition") or "").strip(),
                        examples=as_str_list(entry.get("examples")),
                    )
                )
            except ValidationError as exc:
                logger.debug("Skipping malformed vocabulary entry", error=str(exc))
        return items

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        expected = examples_for_level(level)
        words = [item for item in items if isinstance(item, VocabularyItem)]
        if not words:
            collector.error(
                "structural_error",
                "No vocabulary words could be parsed from the response",
                "Return a JSON array of objects with word, meaning and examples",
            )
            return 0
        if len(words) < MIN_WORDS:
            collector.warning(
                "wrong_count",
                f"Only {len(words)} vocabulary words generated",
                f"Include at least {MIN_WORDS} words from the source text",
            )

        counts_ok = True
        for item in words:
            if not item.word:
                collector.error("structural_error", "A vocabulary entry has no word")
                counts_ok = False
                continue
            if not item.meaning:
                collector.error(
                    "structural_error",
                    f"'{item.word}' is missing a meaning",
                    "Give a short learner-friendly meaning for every word",
                )
            if len(item.examples) != expected:
                counts_ok = False
                collector.error(
                    "wrong_count",
                    f"'{item.word}' has {len(item.examples)} example sentences, "
                    f"expected exactly {expected} for {level.value}",
                    f"Write exactly {expected} example sentences for each word",
                )
            missing = [ex for ex in item.examples if not contains_word(ex, item.word)]
            if missing:
                collector.error(
                    "structural_error",
                    f"{len(missing)} example(s) for '{item.word}' do not use the word",
                    f"Every example sentence must contain '{item.word}'",
                )
        return 10 if counts_ok else 0
