# utils/text_processing.py
"""Tokenisation and frequency helpers shared by the gate and context builder."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

import structlog

logger = structlog.get_logger(__name__)

WORD_RE = re.compile(r"[^\W\d_]+(?:['-][^\W\d_]+)*", re.UNICODE)
_TOKEN_RE = re.compile(r"\S+")
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")
_CAPITALISED_RUN_RE = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\b")

STOPWORDS: frozenset[str] = frozenset(
    """
    a about above after again against all also am an and any are as at be because
    been before being below between both but by can could did do does doing down
    during each even ever every few for from further had has have having he her
    here hers herself him himself his how however i if in into is it its itself
    just like made make many may me might more most much must my myself never no
    nor not now of off often on once one only or other our ours ourselves out over
    own really said same say says she should since so some still such than that
    the their theirs them themselves then there these they this those though
    through to too under until up upon us very was we well were what when where
    whether which while who whom whose why will with within without would yet you
    your yours yourself yourselves
    """.split()
)

COMMON_WORDS: frozenset[str] = STOPWORDS | frozenset(
    """
    that this with have will from they been said each which their time would
    there what about into more some could other after first well also back where
    much before right think know just take people year good come work want give
    look most through thing things going went make made
    """.split()
)


def count_words(text: str) -> int:
    """Return the number of whitespace-separated tokens in ``text``."""
    if not text:
        return 0
    return len(_TOKEN_RE.findall(text))


def whitespace_tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text or "")


def word_tokens(text: str) -> list[str]:
    """Return alphabetic word tokens in order of appearance."""
    return WORD_RE.findall(text or "")


def alphabetic_token_ratio(text: str) -> float:
    """Share of whitespace tokens that are mostly alphabetic words."""
    tokens = whitespace_tokens(text)
    if not tokens:
        return 0.0
    alphabetic = 0
    for token in tokens:
        letters = sum(1 for ch in token if ch.isalpha())
        if letters and letters >= len(token) / 2:
            alphabetic += 1
    return alphabetic / len(tokens)


def split_sentences(text: str) -> list[str]:
    if not text or not text.strip():
        return []
    collapsed = re.sub(r"\s+", " ", text).strip()
    return [m.group(0).strip() for m in _SENTENCE_RE.finditer(collapsed) if m.group(0).strip()]


def split_paragraphs(text: str) -> list[str]:
    """Split on blank lines, falling back to single lines."""
    if not text or not text.strip():
        return []
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
    if len(paragraphs) == 1 and "\n" in paragraphs[0]:
        paragraphs = [line.strip() for line in paragraphs[0].splitlines() if line.strip()]
    return paragraphs


def content_words(
    text: str,
    min_length: int = 4,
    max_length: int = 12,
    exclude: Iterable[str] = COMMON_WORDS,
) -> list[str]:
    """Lower-cased non-stopword tokens within the length bounds, in order."""
    excluded = frozenset(exclude)
    words: list[str] = []
    for token in word_tokens(text):
        lowered = token.lower()
        if min_length <= len(lowered) <= max_length and lowered not in excluded:
            words.append(lowered)
    return words


def rank_by_frequency(words: Iterable[str]) -> list[str]:
    """Distinct words ordered by descending count, ties by first occurrence."""
    counts: Counter[str] = Counter()
    first_seen: dict[str, int] = {}
    for index, word in enumerate(words):
        counts[word] += 1
        first_seen.setdefault(word, index)
    return sorted(counts, key=lambda w: (-counts[w], first_seen[w]))


def capitalised_phrases(text: str) -> list[str]:
    """Capitalised word runs that do not start a sentence, ranked by frequency."""
    phrases: list[str] = []
    for sentence in split_sentences(text):
        for match in _CAPITALISED_RUN_RE.finditer(sentence):
            if match.start() == 0 and " " not in match.group(1):
                continue
            phrase = match.group(1)
            if phrase.lower() in STOPWORDS:
                continue
            phrases.append(phrase)
    return rank_by_frequency(phrases)


def truncate_chars(text: str, limit: int, marker: str = "...") -> str:
    """Cut ``text`` to ``limit`` characters at a word boundary when possible."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    cut = text[: max(limit - len(marker), 0)]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,;:") + marker


def contains_word(text: str, word: str) -> bool:
    """Case-insensitive whole-word check allowing simple inflections."""
    if not text or not word:
        return False
    pattern = rf"\b{re.escape(word.lower())}(?:s|es|ed|d|ing|er|ly)?\b"
    return re.search(pattern, text.lower()) is not None
