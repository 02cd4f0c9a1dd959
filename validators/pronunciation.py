# validators/pronunciation.py
"""Pronunciation section: transcribed practice words and tongue twisters."""

from __future__ import annotations

from typing import Any

from models import CEFRLevel, PronunciationWord, SharedContext, TongueTwister
from utils.response_parsing import as_list, as_str_list, extract_json

from .base import IssueCollector, SectionValidator

MIN_WORDS = 5
MIN_TONGUE_TWISTERS = 2


class PronunciationValidator(SectionValidator):
    section_name = "pronunciation"
    instruction = "Practise saying these words and tongue twisters:"
    error_penalty = 15

    def parse_items(self, raw_text: str) -> list[Any]:
        data = extract_json(raw_text)
        if not isinstance(data, dict):
            return []
        items: list[Any] = []
        for entry in as_list(data.get("words")):
            if not isinstance(entry, dict):
                continue
            items.append(
                PronunciationWord(
                    word=str(entry.get("word") or "").strip(),
                    ipa=str(entry.get("ipa") or "").strip(),
                    tips=as_str_list(entry.get("tips")),
                    practice_sentence=str(
                        entry.get("practiceSentence") or entry.get("practice_sentence") or ""
                    ).strip(),
                )
            )
        twisters = as_list(data.get("tongueTwisters") or data.get("tongue_twisters"))
        for entry in twisters:
            if isinstance(entry, str):
                items.append(TongueTwister(text=entry.strip()))
            elif isinstance(entry, dict):
                items.append(
                    TongueTwister(
                        text=str(entry.get("text") or "").strip(),
                        target_sounds=as_str_list(
                            entry.get("targetSounds") or entry.get("target_sounds")
                        ),
                    )
                )
        return items

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        words = [item for item in items if isinstance(item, PronunciationWord)]
        twisters = [item for item in items if isinstance(item, TongueTwister)]
        if len(words) < MIN_WORDS:
            collector.error(
                "wrong_count",
                f"Insufficient pronunciation words: expected at least {MIN_WORDS}, got {len(words)}",
                f"Include at least {MIN_WORDS} challenging words",
            )
        if len(twisters) < MIN_TONGUE_TWISTERS:
            collector.error(
                "wrong_count",
                f"Insufficient tongue twisters: expected at least {MIN_TONGUE_TWISTERS}, got {len(twisters)}",
                f"Include at least {MIN_TONGUE_TWISTERS} tongue twisters",
            )

        for index, word in enumerate(words, start=1):
            label = word.word or f"Word {index}"
            if len(word.word) < 2:
                collector.error("structural_error", f"Word {index} is invalid")
            if len(word.ipa) < 2:
                collector.error(
                    "structural_error",
                    f"{label} missing IPA transcription",
                    "Provide IPA transcription for pronunciation",
                )
            if not word.tips:
                collector.error(
                    "structural_error",
                    f"{label} missing pronunciation tips",
                    "Add at least one tip for the difficult sounds",
                )
            if len(word.practice_sentence) < 10:
                collector.error(
                    "structural_error",
                    f"{label} missing practice sentence",
                    "Provide a practice sentence using the word",
                )
        for index, twister in enumerate(twisters, start=1):
            if len(twister.text) < 15:
                collector.error("structural_error", f"Tongue twister {index} too short or missing")
            if not twister.target_sounds:
                collector.error(
                    "structural_error",
                    f"Tongue twister {index} missing target sounds",
                    "Tag each tongue twister with the phonemes it practises",
                )

        bonus = 0
        if len(words) >= MIN_WORDS:
            bonus += 5
        if len(twisters) >= MIN_TONGUE_TWISTERS:
            bonus += 5
        return bonus
