# validators/dialogue.py
"""Dialogue section: a two-person conversation that reuses lesson vocabulary."""

from __future__ import annotations

import re
from typing import Any

from rapidfuzz import fuzz, process

from models import CEFRLevel, DialogueLine, SharedContext
from utils.response_parsing import extract_json, strip_code_fences, strip_list_marker
from utils.text_processing import word_tokens

from .base import IssueCollector, SectionValidator

MIN_DIALOGUE_LINES = 12
VOCABULARY_MATCH_THRESHOLD = 90.0

# Words per line expected at each level.
LINE_LENGTH_RANGES: dict[CEFRLevel, tuple[int, int]] = {
    CEFRLevel.A1: (3, 8),
    CEFRLevel.A2: (5, 12),
    CEFRLevel.B1: (8, 15),
    CEFRLevel.B2: (10, 20),
    CEFRLevel.C1: (12, 25),
}

_LINE_RE = re.compile(r"^\s*\**([A-Z][\w .'-]{0,30}?)\**\s*:\s*(.+)$")


def _word_in_tokens(word: str, tokens: list[str]) -> bool:
    if process.extractOne(word, tokens, scorer=fuzz.ratio, score_cutoff=VOCABULARY_MATCH_THRESHOLD):
        return True
    # Inflected forms: "battery" in "batteries", "recycle" in "recycling".
    if len(word) > 4:
        stem = word[:-1]
        return any(token.startswith(stem) for token in tokens)
    return False


def vocabulary_used(lines: list[DialogueLine], vocabulary: tuple[str, ...] | list[str]) -> list[str]:
    """Vocabulary words that appear (allowing small variations) in the dialogue.

    Single words are matched against whole dialogue words, so "art" is not
    found inside "start". Phrases are matched against the running text.
    """
    tokens = [token.lower() for line in lines for token in word_tokens(line.text)]
    if not tokens:
        return []
    all_text = " ".join(tokens)
    used: list[str] = []
    for word in vocabulary:
        parts = [part.lower() for part in word_tokens(word)]
        if not parts:
            continue
        if len(parts) == 1:
            found = _word_in_tokens(parts[0], tokens)
        else:
            found = fuzz.partial_ratio(" ".join(parts), all_text) >= VOCABULARY_MATCH_THRESHOLD
        if found:
            used.append(word)
    return used


class DialogueValidator(SectionValidator):
    section_name = "dialogue"
    instruction = "Read the dialogue aloud with your tutor, then swap roles:"

    def parse_items(self, raw_text: str) -> list[Any]:
        data = extract_json(raw_text)
        if isinstance(data, dict):
            data = data.get("dialogue") or data.get("lines")
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return [
                DialogueLine(speaker=str(d.get("speaker", "")).strip(), text=str(d.get("text", "")).strip())
                for d in data
                if isinstance(d, dict) and str(d.get("text", "")).strip()
            ]
        lines: list[DialogueLine] = []
        for raw_line in strip_code_fences(raw_text).splitlines():
            match = _LINE_RE.match(strip_list_marker(raw_line) or raw_line)
            if match:
                lines.append(DialogueLine(speaker=match.group(1).strip(), text=match.group(2).strip()))
        return lines

    def check(
        self,
        items: list[Any],
        level: CEFRLevel,
        context: SharedContext,
        collector: IssueCollector,
    ) -> int:
        lines = [item for item in items if isinstance(item, DialogueLine)]
        if len(lines) < MIN_DIALOGUE_LINES:
            collector.error(
                "wrong_count",
                f"Insufficient dialogue lines: expected at least {MIN_DIALOGUE_LINES}, got {len(lines)}",
                "Generate more dialogue lines",
            )

        speakers = list(dict.fromkeys(line.speaker for line in lines))
        if lines and len(speakers) != 2:
            collector.error(
                "structural_error",
                f"Dialogue must have exactly two speakers, found {len(speakers)}",
                "Write the conversation between exactly two people",
            )
        for index in range(1, len(lines)):
            if lines[index].speaker == lines[index - 1].speaker:
                collector.error(
                    "structural_error",
                    f"Same speaker has consecutive lines at position {index + 1}",
                    "Alternate speakers on every line",
                )
                break

        vocabulary = context.key_vocabulary
        required = min(3, len(vocabulary))
        used = vocabulary_used(lines, vocabulary)
        if len(used) < required:
            collector.error(
                "structural_error",
                f"Only {len(used)} vocabulary words used in dialogue, expected at least {required}",
                f"Use at least {required} of these words: {', '.join(vocabulary[:8])}",
            )

        low, high = LINE_LENGTH_RANGES[level]
        short = sum(1 for line in lines if len(line.text.split()) < low)
        long = sum(1 for line in lines if len(line.text.split()) > high)
        if short:
            collector.warning(
                "complexity_mismatch",
                f"{short} line(s) too short for {level.value}",
                f"Lines should be {low}-{high} words",
            )
        if long:
            collector.warning(
                "complexity_mismatch",
                f"{long} line(s) too long for {level.value}",
                f"Lines should be {low}-{high} words",
            )
        return 10 if len(lines) >= MIN_DIALOGUE_LINES else 0
