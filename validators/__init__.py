"""Section validators keyed by section name."""

from .base import IssueCollector, SectionValidator, is_refusal
from .dialogue import DialogueValidator
from .grammar import GrammarValidator
from .pronunciation import PronunciationValidator
from .questions import (
    ComprehensionValidator,
    DiscussionValidator,
    WarmupValidator,
    WrapupValidator,
)
from .reading import ReadingValidator
from .vocabulary import EXAMPLES_PER_LEVEL, VocabularyValidator, examples_for_level

VALIDATORS: dict[str, SectionValidator] = {
    validator.section_name: validator
    for validator in (
        WarmupValidator(),
        VocabularyValidator(),
        ReadingValidator(),
        ComprehensionValidator(),
        DiscussionValidator(),
        DialogueValidator(),
        GrammarValidator(),
        PronunciationValidator(),
        WrapupValidator(),
    )
}


def get_validator(section_name: str) -> SectionValidator:
    """Return the validator registered for ``section_name``."""
    try:
        return VALIDATORS[section_name]
    except KeyError:
        raise KeyError(f"No validator registered for section '{section_name}'") from None


__all__ = [
    "VALIDATORS",
    "get_validator",
    "SectionValidator",
    "IssueCollector",
    "is_refusal",
    "EXAMPLES_PER_LEVEL",
    "examples_for_level",
    "WarmupValidator",
    "VocabularyValidator",
    "ReadingValidator",
    "ComprehensionValidator",
    "DiscussionValidator",
    "DialogueValidator",
    "GrammarValidator",
    "PronunciationValidator",
    "WrapupValidator",
]
