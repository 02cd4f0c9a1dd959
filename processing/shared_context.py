# processing/shared_context.py
"""Build the context extracted once per session and reused by every section."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import Any

import structlog

from config import settings
from core.cancellation import bounded_call, check_cancelled
from core.exceptions import GenerationCancelledError
from core.llm_interface import TextGenerator, call_generator, truncate_text_by_tokens
from models import CEFRLevel, SharedContext
from prompt_renderer import render_prompt
from utils.response_parsing import as_str_list, extract_json, split_list_lines
from utils.text_processing import (
    capitalised_phrases,
    content_words,
    rank_by_frequency,
    split_sentences,
    truncate_chars,
)

logger = structlog.get_logger(__name__)

GENERIC_VOCABULARY: tuple[str, ...] = (
    "communication",
    "important",
    "different",
    "example",
    "information",
    "situation",
)
GENERIC_THEMES: tuple[str, ...] = ("general topic", "communication", "daily life")
FALLBACK_VOCABULARY_SIZE = 8

# Checked in order; the first keyword found in the text names the topic.
TOPIC_TITLES: tuple[tuple[str, str], ...] = (
    ("ryder cup", "Ryder Cup Golf"),
    ("golf", "Golf Competition"),
    ("competition", "Sports Competition"),
    ("travel", "Travel & Tourism"),
    ("business", "Business Communication"),
    ("technology", "Technology Today"),
    ("environment", "Environmental Issues"),
    ("health", "Health & Wellness"),
    ("education", "Education System"),
    ("culture", "Cultural Exchange"),
    ("food", "Food & Cuisine"),
    ("sports", "Sports & Recreation"),
    ("music", "Music & Arts"),
    ("history", "Historical Events"),
    ("science", "Science & Discovery"),
)

LESSON_TYPE_NAMES: dict[str, str] = {
    "discussion": "Discussion",
    "grammar": "Grammar Focus",
    "travel": "Travel & Tourism",
    "business": "Business English",
    "pronunciation": "Pronunciation Practice",
}

_PROPER_NOUN_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")


def fallback_vocabulary(text: str, limit: int = FALLBACK_VOCABULARY_SIZE) -> list[str]:
    """Most frequent content words, ties broken by first occurrence."""
    ranked = rank_by_frequency(content_words(text))
    return ranked[:limit] or list(GENERIC_VOCABULARY)


def fallback_themes(text: str, limit: int = settings.CONTEXT_THEMES_MAX) -> list[str]:
    themes: list[str] = []
    for phrase in capitalised_phrases(text):
        if phrase.lower() not in themes:
            themes.append(phrase.lower())
        if len(themes) >= 2:
            break
    for word in rank_by_frequency(content_words(text, min_length=5)):
        if len(themes) >= limit:
            break
        if word not in themes:
            themes.append(word)
    return themes or list(GENERIC_THEMES)


def fallback_summary(text: str, max_chars: int = settings.CONTEXT_SUMMARY_MAX_CHARS) -> str:
    sentences = split_sentences(text)[: settings.CONTEXT_FALLBACK_SUMMARY_SENTENCES]
    return truncate_chars(" ".join(sentences) or text, max_chars)


def fallback_title(lesson_type: str, level: CEFRLevel) -> str:
    name = LESSON_TYPE_NAMES.get(lesson_type, "English")
    return f"{name} - {level.value} Level"


def contextual_title(text: str, lesson_type: str, level: CEFRLevel) -> str:
    """Derive a lesson title from topic keywords, then proper nouns."""
    lowered = text.lower()
    for keyword, topic in TOPIC_TITLES:
        if keyword in lowered:
            return f"{topic} Discussion"
    match = _PROPER_NOUN_RE.search(text)
    if match and len(match.group(0)) < 20:
        return f"{match.group(0)} Discussion"
    return fallback_title(lesson_type, level)


def _parse_word_list(raw: str, min_len: int, max_len: int) -> list[str]:
    data = extract_json(raw)
    if isinstance(data, dict):
        data = next((v for v in data.values() if isinstance(v, list)), None)
    items = as_str_list(data) if isinstance(data, list) else split_list_lines(raw)
    cleaned: list[str] = []
    for item in items:
        value = item.strip().strip("\"'.,").lower()
        if min_len <= len(value) <= max_len and value not in cleaned:
            cleaned.append(value)
    return cleaned


class SharedContextBuilder:
    """Extracts vocabulary, themes and a summary with deterministic fallbacks.

    Each of the three model calls is bounded by ``timeout``. A call that fails
    or times out falls back to the deterministic extractor; a cancelled session
    raises :class:`GenerationCancelledError`.
    """

    def __init__(
        self,
        generator: TextGenerator,
        timeout: float | None = None,
        on_usage: Callable[[dict[str, int] | None], None] | None = None,
    ) -> None:
        self.generator = generator
        self.timeout = timeout
        self.on_usage = on_usage

    async def build(
        self,
        text: str,
        lesson_type: str,
        level: CEFRLevel | str,
        language: str = "english",
        cancel_event: asyncio.Event | None = None,
    ) -> SharedContext:
        check_cancelled(cancel_event)
        level = CEFRLevel.parse(level)
        excerpt = truncate_text_by_tokens(
            text, settings.CONTEXT_MODEL or settings.GENERATION_MODEL,
            settings.CONTEXT_SOURCE_MAX_TOKENS,
        )
        prompt_ctx: dict[str, Any] = {
            "source_text": excerpt,
            "level": level.value,
            "language": language,
            "min_words": settings.CONTEXT_VOCABULARY_MIN,
            "max_words": settings.CONTEXT_VOCABULARY_MAX,
            "min_themes": settings.CONTEXT_THEMES_MIN,
            "max_themes": settings.CONTEXT_THEMES_MAX,
            "max_chars": settings.CONTEXT_SUMMARY_MAX_CHARS,
        }

        vocabulary_raw, themes_raw, summary_raw = await asyncio.gather(
            self._call("context/vocabulary.j2", prompt_ctx, cancel_event),
            self._call("context/themes.j2", prompt_ctx, cancel_event),
            self._call("context/summary.j2", prompt_ctx, cancel_event),
            return_exceptions=True,
        )
        for raw in (vocabulary_raw, themes_raw, summary_raw):
            if isinstance(raw, GenerationCancelledError):
                raise raw

        vocabulary = self._vocabulary(vocabulary_raw, text)
        themes = self._themes(themes_raw, text)
        summary = self._summary(summary_raw, text)

        context = SharedContext(
            source_text=excerpt,
            difficulty_level=level,
            key_vocabulary=tuple(vocabulary),
            main_themes=tuple(themes),
            summary=summary,
            target_language=language,
            lesson_type=lesson_type,
            lesson_title=contextual_title(text, lesson_type, level),
        )
        logger.info(
            "Shared context built",
            lesson_title=context.lesson_title,
            vocabulary_count=len(context.key_vocabulary),
            themes_count=len(context.main_themes),
            summary_length=len(context.summary),
        )
        return context

    async def _call(
        self, template: str, prompt_ctx: dict[str, Any], cancel_event: asyncio.Event | None
    ) -> str:
        raw, usage = await bounded_call(
            call_generator(
                self.generator,
                render_prompt(template, prompt_ctx),
                temperature=settings.TEMPERATURE_CONTEXT,
                cached=True,
            ),
            self.timeout,
            cancel_event,
            template,
        )
        if self.on_usage is not None:
            self.on_usage(usage)
        return raw or ""

    def _vocabulary(self, raw: str | BaseException, text: str) -> list[str]:
        if isinstance(raw, BaseException):
            logger.warning("Vocabulary extraction failed; using fallback", error=str(raw))
            return fallback_vocabulary(text)
        words = _parse_word_list(raw, 3, 19)[: settings.CONTEXT_VOCABULARY_MAX]
        if len(words) < settings.CONTEXT_VOCABULARY_MIN:
            logger.warning(
                "Vocabulary extraction returned too few words; using fallback",
                count=len(words),
            )
            return fallback_vocabulary(text)
        return words

    def _themes(self, raw: str | BaseException, text: str) -> list[str]:
        if isinstance(raw, BaseException):
            logger.warning("Theme extraction failed; using fallback", error=str(raw))
            return fallback_themes(text)
        themes = _parse_word_list(raw, 4, 49)[: settings.CONTEXT_THEMES_MAX]
        if len(themes) < settings.CONTEXT_THEMES_MIN:
            logger.warning(
                "Theme extraction returned too few themes; using fallback",
                count=len(themes),
            )
            return fallback_themes(text)
        return themes

    def _summary(self, raw: str | BaseException, text: str) -> str:
        if isinstance(raw, BaseException):
            logger.warning("Summary generation failed; using fallback", error=str(raw))
            return fallback_summary(text)
        summary = " ".join(raw.split())
        if not summary:
            return fallback_summary(text)
        return truncate_chars(summary, settings.CONTEXT_SUMMARY_MAX_CHARS)
