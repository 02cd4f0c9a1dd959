# models/error_models.py
"""Classified error types and the messages derived from them."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .lesson_models import WireModel


class ErrorType(str, Enum):
    """Closed taxonomy produced by the error classifier."""

    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONTENT_ISSUE = "CONTENT_ISSUE"
    NETWORK_ERROR = "NETWORK_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNKNOWN = "UNKNOWN"


class RecoveryAction(str, Enum):
    RETRY = "retry"
    MANUAL_SELECTION = "manual_selection"
    COPY_PASTE_FALLBACK = "copy_paste_fallback"
    TRY_DIFFERENT_PAGE = "try_different_page"
    WAIT_AND_RETRY = "wait_and_retry"
    CONTACT_SUPPORT = "contact_support"


class RecoveryOption(WireModel):
    """An action offered to the caller alongside a classified error."""

    action: RecoveryAction
    label: str
    description: str
    primary: bool = False


class ClassifiedError(BaseModel):
    """Normalised representation of an arbitrary failure."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: ErrorType
    original_error: BaseException
    context: dict[str, Any] = Field(default_factory=dict)
    error_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    can_retry: bool = False
    recovery_options: list[RecoveryOption] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return str(self.original_error) or type(self.original_error).__name__

    def summary(self) -> dict[str, Any]:
        """Compact wire representation used in lesson payloads."""
        return {
            "type": self.type.value,
            "message": self.message,
            "errorId": self.error_id,
            "canRetry": self.can_retry,
        }


class UserErrorMessage(WireModel):
    title: str
    message: str
    actionable_steps: list[str] = Field(default_factory=list)
    error_id: str
    support_contact: str | None = None
    technical_details: str | None = None


class SupportErrorMessage(WireModel):
    """Verbose description of a failure for support staff."""

    error_id: str
    timestamp: datetime
    error_type: ErrorType
    context: dict[str, Any] = Field(default_factory=dict)
    technical_details: str
    stack_trace: str | None = None
