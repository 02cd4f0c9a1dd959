# core/exceptions.py
"""Exceptions raised by the lesson generation pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - for type hints only
    from models import ClassifiedError, ProgressUpdate, UserErrorMessage, ValidationResult


class LessonGenerationError(Exception):
    """A session failed. Carries everything a caller needs to report it."""

    def __init__(
        self,
        classified: ClassifiedError,
        user_message: UserErrorMessage,
        progress_state: ProgressUpdate | None = None,
        validation: ValidationResult | None = None,
    ) -> None:
        super().__init__(user_message.message)
        self.classified = classified
        self.user_message = user_message
        self.progress_state = progress_state
        self.validation = validation

    @property
    def error_id(self) -> str:
        return self.classified.error_id

    def to_event(self) -> dict[str, Any]:
        """Wire payload for the ``error`` stream event."""
        return {
            "type": "error",
            "error": {
                "type": self.classified.type.value,
                "message": self.user_message.message,
                "errorId": self.classified.error_id,
            },
            "progressState": self.progress_state.to_wire() if self.progress_state else None,
        }


class SectionDependencyError(Exception):
    """A section was scheduled before its prerequisites were accepted."""

    def __init__(self, section: str, missing: list[str]) -> None:
        super().__init__(
            f"Section '{section}' cannot start; dependencies not accepted: {', '.join(missing)}"
        )
        self.section = section
        self.missing = missing


class SectionRejectedError(Exception):
    """A section ended in the rejected state."""

    def __init__(
        self,
        section: str,
        reason: str,
        recoverable: bool = True,
        validation: ValidationResult | None = None,
        classified: ClassifiedError | None = None,
    ) -> None:
        outcome = "was rejected" if classified is not None else "failed content validation"
        super().__init__(f"Section '{section}' {outcome}: {reason}")
        self.section = section
        self.recoverable = recoverable
        self.validation = validation
        self.classified = classified


class GenerationCancelledError(Exception):
    """The session's cancellation signal was set."""


class ContentGateError(Exception):
    """Source text did not pass the input content gate."""

    def __init__(self, validation: ValidationResult) -> None:
        errors = [issue.message for issue in validation.errors]
        super().__init__(
            "Content validation failed: " + ("; ".join(errors) or "invalid content")
        )
        self.validation = validation
        self.recoverable = False
