"""Central package for lesson data models."""

from .error_models import (
    ClassifiedError,
    ErrorType,
    RecoveryAction,
    RecoveryOption,
    SupportErrorMessage,
    UserErrorMessage,
)
from .lesson_models import (
    CEFRLevel,
    LessonResult,
    ProgressUpdate,
    QualityMetrics,
    RegenerationContext,
    SectionMetrics,
    SectionResult,
    SectionSpec,
    SharedContext,
    ValidationIssue,
    ValidationResult,
)
from .section_models import (
    DialogueLine,
    GrammarContent,
    GrammarExercise,
    PronunciationWord,
    TongueTwister,
    VocabularyItem,
)

__all__ = [
    "CEFRLevel",
    "SharedContext",
    "SectionSpec",
    "SectionResult",
    "ValidationIssue",
    "ValidationResult",
    "RegenerationContext",
    "QualityMetrics",
    "SectionMetrics",
    "ProgressUpdate",
    "LessonResult",
    "ErrorType",
    "RecoveryAction",
    "RecoveryOption",
    "ClassifiedError",
    "UserErrorMessage",
    "SupportErrorMessage",
    "VocabularyItem",
    "DialogueLine",
    "GrammarExercise",
    "GrammarContent",
    "PronunciationWord",
    "TongueTwister",
]
