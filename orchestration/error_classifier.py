# orchestration/error_classifier.py
"""Map arbitrary failures onto a closed taxonomy and manage retry backoff."""

from __future__ import annotations

import re
import threading
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from config import GenerationConfig, settings
from models import (
    ClassifiedError,
    ErrorType,
    RecoveryAction,
    RecoveryOption,
    SupportErrorMessage,
    UserErrorMessage,
)

logger = structlog.get_logger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _word(*phrases: str) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(phrases) + r")\b", re.IGNORECASE)


# Ordered; the first matching rule wins.
CLASSIFICATION_RULES: tuple[tuple[ErrorType, re.Pattern[str]], ...] = (
    (
        ErrorType.QUOTA_EXCEEDED,
        _word(
            "quota", r"rate[ _-]?limit(?:ed)?", "too many requests", "limit exceeded",
            "resource_exhausted", "overloaded", r"api[ _-]?key", "insufficient_quota",
            "429", "401",
        ),
    ),
    (
        ErrorType.CONTENT_ISSUE,
        _word(
            "safety", r"content[ _]?filter", "validation", "invalid input",
            "invalid content", "invalid_argument", "content too short",
            "unsupported format", "format", r"pars(?:e|ing)", "400",
        ),
    ),
    (
        ErrorType.NETWORK_ERROR,
        re.compile(
            r"time(?:d)?[ _-]?out|timed out|connect|network|\bdns\b|socket|"
            r"econnrefused|enotfound|etimedout|econnreset|\bfetch\b|\b50[234]\b",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorType.PERMISSION_DENIED,
        _word("cors", "blocked", "permission", "forbidden", "access denied", "403"),
    ),
)

RETRYABLE_TYPES = frozenset(
    {ErrorType.QUOTA_EXCEEDED, ErrorType.NETWORK_ERROR, ErrorType.UNKNOWN}
)

USER_MESSAGES: dict[ErrorType, dict[str, Any]] = {
    ErrorType.QUOTA_EXCEEDED: {
        "title": "API Quota Exceeded",
        "message": "API quota exceeded, please try again later",
        "actionable_steps": [
            "Wait a few minutes before trying again",
            "Try generating a shorter lesson",
            "Contact support if the issue persists",
        ],
        "support": True,
    },
    ErrorType.CONTENT_ISSUE: {
        "title": "Content Processing Error",
        "message": "Unable to process this content, please try different text",
        "actionable_steps": [
            "Make sure the content has enough complete sentences",
            "Try selecting different text from the webpage",
            "Check that the content is in a supported language",
            "Remove any special characters or formatting",
        ],
        "support": False,
    },
    ErrorType.NETWORK_ERROR: {
        "title": "Connection Error",
        "message": "Connection error, please check your internet and try again",
        "actionable_steps": [
            "Check your internet connection",
            "Wait a moment and try again",
            "Contact support if the problem continues",
        ],
        "support": False,
    },
    ErrorType.PERMISSION_DENIED: {
        "title": "Access Blocked",
        "message": "This page blocked access to its content, please select or paste the text instead",
        "actionable_steps": [
            "Select the article text manually",
            "Copy and paste the text into the lesson generator",
            "Try a different page",
        ],
        "support": False,
    },
    ErrorType.UNKNOWN: {
        "title": "Service Temporarily Unavailable",
        "message": "AI service temporarily unavailable, please try again later",
        "actionable_steps": [
            "Wait a few minutes and try again",
            "Contact support with the error ID below",
        ],
        "support": True,
    },
}


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_error_id() -> str:
    """``ERR_<base36 millis>_<random>``; unique per call."""
    millis = int(time.time() * 1000)
    return f"ERR_{_to_base36(millis)}_{uuid.uuid4().hex[:8]}".upper()


def error_status(error: BaseException) -> int | None:
    """HTTP-ish status carried by ``error`` or its response, if any."""
    status = getattr(error, "status", None) or getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classification_text(error: BaseException) -> str:
    """Class name, message, code and status joined for rule matching."""
    parts = [type(error).__name__, str(error)]
    code = getattr(error, "code", None)
    if code:
        parts.append(str(code))
    status = error_status(error)
    if status is not None:
        parts.append(str(status))
    return " ".join(parts)


def determine_error_type(error: BaseException) -> ErrorType:
    text = classification_text(error)
    for error_type, pattern in CLASSIFICATION_RULES:
        if pattern.search(text):
            return error_type
    return ErrorType.UNKNOWN


class RetryManager:
    """Per-session retry counters with exponential backoff."""

    def __init__(
        self,
        max_retry_attempts: int | None = None,
        base_delay_ms: int = settings.RETRY_BASE_DELAY_MS,
    ) -> None:
        self.max_retry_attempts = max_retry_attempts
        self.base_delay_ms = base_delay_ms
        self._attempts: dict[str, int] = {}
        self._lock = threading.Lock()

    def get_attempts(self, session_id: str) -> int:
        with self._lock:
            return self._attempts.get(session_id, 0)

    def get_retry_delay(self, session_id: str) -> int:
        """Delay in milliseconds before the next retry for ``session_id``."""
        return self.base_delay_ms * 2 ** self.get_attempts(session_id)

    def record_retry_attempt(self, session_id: str) -> int:
        with self._lock:
            attempts = self._attempts.get(session_id, 0) + 1
            self._attempts[session_id] = attempts
        logger.debug("Recorded retry attempt", session_id=session_id, attempts=attempts)
        return attempts

    def clear_retry_attempts(self, session_id: str) -> None:
        with self._lock:
            self._attempts.pop(session_id, None)

    def can_retry(self, session_id: str | None) -> bool:
        if self.max_retry_attempts is None or session_id is None:
            return True
        return self.get_attempts(session_id) < self.max_retry_attempts


class ErrorClassifier:
    """Classifies failures and builds the messages and options shown for them."""

    def __init__(
        self,
        config: GenerationConfig | None = None,
        retry_manager: RetryManager | None = None,
    ) -> None:
        self.config = config or GenerationConfig.from_settings()
        self.retry_manager = retry_manager or RetryManager(
            max_retry_attempts=self.config.max_retry_attempts,
            base_delay_ms=self.config.retry_base_delay_ms,
        )

    def classify(
        self, error: BaseException, context: dict[str, Any] | None = None
    ) -> ClassifiedError:
        """Return a :class:`ClassifiedError` with a fresh error id."""
        timestamp = datetime.now(timezone.utc)
        full_context = dict(context or {})
        full_context.setdefault("timestamp", timestamp.isoformat())
        error_type = determine_error_type(error)
        classified = ClassifiedError(
            type=error_type,
            original_error=error,
            context=full_context,
            error_id=generate_error_id(),
            timestamp=timestamp,
        )
        classified.can_retry = self._can_retry(classified)
        classified.recovery_options = self.get_recovery_options(classified)
        logger.info(
            "Classified error",
            error_id=classified.error_id,
            error_type=error_type.value,
            can_retry=classified.can_retry,
            error=str(error)[:200],
        )
        return classified

    def _can_retry(self, classified: ClassifiedError) -> bool:
        if not self.config.enable_retry:
            return False
        if classified.type is ErrorType.CONTENT_ISSUE:
            recoverable = getattr(
                classified.original_error,
                "recoverable",
                classified.context.get("recoverable", False),
            )
            if not recoverable:
                return False
        elif classified.type not in RETRYABLE_TYPES:
            return False
        return self.retry_manager.can_retry(classified.context.get("session_id"))

    def get_recovery_options(self, classified: ClassifiedError) -> list[RecoveryOption]:
        """Actions to offer alongside ``classified``; at least one is primary."""
        options: list[RecoveryOption] = []
        can_retry = classified.can_retry
        if can_retry:
            session_id = classified.context.get("session_id")
            delay = self.retry_manager.get_retry_delay(session_id) if session_id else self.retry_manager.base_delay_ms
            options.append(
                RecoveryOption(
                    action=RecoveryAction.RETRY,
                    label="Try Again",
                    description=f"Retry in {delay / 1000:g} seconds.",
                    primary=True,
                )
            )
        elif classified.type is ErrorType.QUOTA_EXCEEDED:
            options.append(
                RecoveryOption(
                    action=RecoveryAction.WAIT_AND_RETRY,
                    label="Wait and Try Again",
                    description="The service is busy or out of quota. Try again in a few minutes.",
                    primary=True,
                )
            )
        if classified.type in (ErrorType.PERMISSION_DENIED, ErrorType.CONTENT_ISSUE):
            options.append(
                RecoveryOption(
                    action=RecoveryAction.MANUAL_SELECTION,
                    label="Select Text Manually",
                    description="Highlight the text you want to use and generate from the selection.",
                    primary=not can_retry,
                )
            )
        options.append(
            RecoveryOption(
                action=RecoveryAction.COPY_PASTE_FALLBACK,
                label="Copy and Paste",
                description="Paste the content directly into the lesson generator.",
            )
        )
        if classified.type is ErrorType.PERMISSION_DENIED:
            options.append(
                RecoveryOption(
                    action=RecoveryAction.TRY_DIFFERENT_PAGE,
                    label="Try a Different Page",
                    description="Some sites block content access; another source may work.",
                )
            )
        if classified.type in (ErrorType.QUOTA_EXCEEDED, ErrorType.UNKNOWN):
            options.append(
                RecoveryOption(
                    action=RecoveryAction.CONTACT_SUPPORT,
                    label="Contact Support",
                    description=f"Email {settings.SUPPORT_CONTACT} with error ID {classified.error_id}.",
                )
            )
        if not any(option.primary for option in options):
            fallback = next(
                o for o in options if o.action is RecoveryAction.COPY_PASTE_FALLBACK
            )
            fallback.primary = True
        return options

    def generate_user_message(self, classified: ClassifiedError) -> UserErrorMessage:
        template = USER_MESSAGES[classified.type]
        return UserErrorMessage(
            title=template["title"],
            message=template["message"],
            actionable_steps=list(template["actionable_steps"]),
            error_id=classified.error_id,
            support_contact=settings.SUPPORT_CONTACT if template["support"] else None,
            technical_details=(
                self._technical_details(classified.original_error)
                if self.config.show_technical_details
                else None
            ),
        )

    def generate_support_message(self, classified: ClassifiedError) -> SupportErrorMessage:
        error = classified.original_error
        stack_trace = None
        if error.__traceback__ is not None:
            stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        return SupportErrorMessage(
            error_id=classified.error_id,
            timestamp=classified.timestamp,
            error_type=classified.type,
            context=classified.context,
            technical_details=self._technical_details(error),
            stack_trace=stack_trace,
        )

    @staticmethod
    def _technical_details(error: BaseException) -> str:
        details = [f"Type: {type(error).__name__}"]
        if str(error):
            details.append(f"Message: {error}")
        code = getattr(error, "code", None)
        if code:
            details.append(f"Code: {code}")
        status = error_status(error)
        if status is not None:
            details.append(f"Status: {status}")
        response = getattr(error, "response", None)
        text = getattr(response, "text", None)
        if isinstance(text, str) and text:
            details.append(f"Response: {text[:500]}")
        return "\n".join(details)
