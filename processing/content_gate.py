# processing/content_gate.py
"""Pre-flight checks on source text before any generation is attempted."""

from __future__ import annotations

import re

import numpy as np
import structlog

from config import GenerationConfig, settings
from models import ValidationIssue, ValidationResult
from models.lesson_models import WireModel
from utils.text_processing import (
    alphabetic_token_ratio,
    count_words,
    split_sentences,
    word_tokens,
)

logger = structlog.get_logger(__name__)

EDUCATIONAL_KEYWORDS = (
    "learn", "understand", "explain", "research", "study", "analysis",
    "history", "science", "culture", "education", "knowledge",
)

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "english",
    "es": "spanish",
    "fr": "french",
    "de": "german",
    "it": "italian",
    "pt": "portuguese",
    "nl": "dutch",
    "pl": "polish",
    "ru": "russian",
    "ja": "japanese",
    "ko": "korean",
    "zh": "chinese",
}

_SOCIAL_SIGNALS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?<![\w.])@\w{2,}"),
    re.compile(r"(?<![\w&])#[A-Za-z]\w+"),
    re.compile(r"\b\d+\s*(?:likes?|shares?|comments?|retweets?)\b", re.IGNORECASE),
    re.compile(r"\bposted\s+\d+\s+(?:minutes?|hours?|days?)\s+ago\b", re.IGNORECASE),
    re.compile(r"^\s*(?:reply|retweet|like this|share this)\b", re.IGNORECASE | re.MULTILINE),
)


class QualityFactors(WireModel):
    has_educational_value: bool
    has_varied_vocabulary: bool
    has_good_structure: bool
    suitable_for_language_learning: bool


class ContentQuality(WireModel):
    """Heuristic quality score in [0, 1] with the factors behind it."""

    score: float
    factors: QualityFactors


def is_supported_language(language: str) -> bool:
    lowered = language.strip().lower()
    return lowered in SUPPORTED_LANGUAGES or lowered in SUPPORTED_LANGUAGES.values()


def looks_like_social_media(text: str) -> bool:
    """True when two or more distinct feed/comment signals are present."""
    hits = sum(1 for pattern in _SOCIAL_SIGNALS if pattern.search(text))
    return hits >= 2


class ContentGate:
    """Validates raw source text. Pure; never calls external services."""

    def __init__(self, config: GenerationConfig | None = None) -> None:
        self.config = config or GenerationConfig.from_settings()

    def check_content_quality(self, text: str) -> ContentQuality:
        """Score lexical diversity, sentence shape and educational keywords."""
        words = [w.lower() for w in word_tokens(text)]
        sentences = split_sentences(text)
        if not words or not sentences:
            return ContentQuality(
                score=0.0,
                factors=QualityFactors(
                    has_educational_value=False,
                    has_varied_vocabulary=False,
                    has_good_structure=False,
                    suitable_for_language_learning=False,
                ),
            )

        diversity = len(set(words)) / len(words)
        has_varied_vocabulary = diversity > 0.4

        lengths = np.array([count_words(s) for s in sentences], dtype=float)
        mean_length = float(lengths.mean())
        # Coefficient of variation; 0 for a single sentence.
        variation = float(lengths.std() / mean_length) if mean_length else 0.0
        has_good_structure = (
            len(sentences) >= 3 and 8 <= mean_length <= 25 and variation <= 1.0
        )

        educational_hits = sum(
            1 for w in words if any(keyword in w for keyword in EDUCATIONAL_KEYWORDS)
        )
        has_educational_value = educational_hits > len(words) * 0.02

        complete = sum(1 for s in sentences if s.rstrip()[-1:] in ".!?")
        complete_ratio = complete / len(sentences)

        score = min(0.2, len(words) / 200 * 0.2)
        if has_good_structure:
            score += 0.25
        elif mean_length >= 5:
            score += 0.15
        if has_varied_vocabulary:
            score += 0.25
        elif diversity > 0.25:
            score += 0.15
        if has_educational_value:
            score += 0.15
        elif educational_hits:
            score += 0.05
        if complete_ratio > 0.7:
            score += 0.15
        elif complete_ratio > 0.5:
            score += 0.05

        score = round(min(1.0, score), 3)
        return ContentQuality(
            score=score,
            factors=QualityFactors(
                has_educational_value=has_educational_value,
                has_varied_vocabulary=has_varied_vocabulary,
                has_good_structure=has_good_structure,
                suitable_for_language_learning=score * 100 >= self.config.min_quality_score,
            ),
        )

    def validate(self, text: str, language: str | None = None) -> ValidationResult:
        """Gate source text for lesson generation."""
        return self._evaluate(text, self.config.min_word_count, language)

    def assess_extraction_suitability(
        self, text: str, language: str | None = None
    ) -> ValidationResult:
        """Gate whether extracted page content is worth offering for a lesson."""
        return self._evaluate(text, settings.EXTRACTION_MIN_WORD_COUNT, language)

    def _evaluate(
        self, text: str, min_words: int, language: str | None
    ) -> ValidationResult:
        if not text or not text.strip():
            return ValidationResult(
                is_valid=False,
                meets_minimum_quality=False,
                issues=[
                    ValidationIssue(
                        type="insufficient_content",
                        message="Content cannot be empty",
                        suggested_action="Select or paste some text to generate a lesson from.",
                    )
                ],
                recommendations=["Copy and paste content directly into the lesson generator"],
                score=0,
            )

        issues: list[ValidationIssue] = []
        warnings: list[str] = []
        recommendations: list[str] = []

        word_count = count_words(text)
        if word_count < min_words:
            issues.append(
                ValidationIssue(
                    type="insufficient_content",
                    message=(
                        f"Content is too short ({word_count} words). Minimum "
                        f"{min_words} words required for quality lesson generation."
                    ),
                    suggested_action="Select a longer article or add more text from the page.",
                )
            )
            recommendations.append("Look for longer articles, blog posts, or news stories")
        elif word_count < min_words * 1.5:
            recommendations.append(
                "Content is on the shorter side. Consider adding related content for a fuller lesson."
            )

        ratio = alphabetic_token_ratio(text)
        if ratio < settings.MIN_ALPHABETIC_TOKEN_RATIO:
            issues.append(
                ValidationIssue(
                    type="unreadable_content",
                    message="Content is mostly numbers or symbols and cannot be used for a lesson.",
                    suggested_action="Select the readable article text instead of tables or code.",
                )
            )

        if language and not is_supported_language(language):
            issues.append(
                ValidationIssue(
                    type="unsupported_language",
                    message=f'Language "{language}" is not currently supported for lesson generation.',
                    suggested_action=(
                        "Use one of the supported languages: "
                        f"{', '.join(SUPPORTED_LANGUAGES.values())}."
                    ),
                )
            )

        if looks_like_social_media(text):
            issues.append(
                ValidationIssue(
                    type="social_media_content",
                    message=(
                        "Content appears to be from social media feeds or comments, "
                        "which are not suitable for lessons."
                    ),
                    suggested_action="Use articles, blogs, or news content instead of social media.",
                )
            )

        quality = self.check_content_quality(text)
        if not quality.factors.has_good_structure:
            warnings.append(
                "Content lacks clear sentence structure. Well-punctuated prose works best."
            )
        if not quality.factors.has_educational_value:
            recommendations.append("Informative articles and tutorials make richer lessons")

        quality_points = round(quality.score * 100)
        if quality_points < self.config.min_quality_score:
            issues.append(
                ValidationIssue(
                    type="poor_quality",
                    message=(
                        f"Content quality is low (score {quality_points}/100, "
                        f"minimum {self.config.min_quality_score})."
                    ),
                    severity="error" if self.config.strict_mode else "warning",
                    suggested_action="Choose well-structured text with varied vocabulary.",
                )
            )

        error_count = sum(1 for i in issues if i.severity == "error")
        warning_count = len(issues) - error_count
        score = max(0, min(100, quality_points - 30 * error_count - 5 * warning_count))
        result = ValidationResult(
            is_valid=error_count == 0,
            meets_minimum_quality=score >= self.config.min_quality_score,
            issues=issues,
            warnings=warnings,
            recommendations=recommendations,
            score=score,
        )
        logger.debug(
            "Content gate evaluated",
            words=word_count,
            min_words=min_words,
            score=score,
            valid=result.is_valid,
            issue_types=[i.type for i in issues],
        )
        return result
