# tests/test_error_classifier.py
import httpx
import pytest

from config import GenerationConfig
from core.exceptions import ContentGateError, SectionRejectedError
from models import ErrorType, RecoveryAction, ValidationIssue, ValidationResult
from orchestration.error_classifier import (
    ErrorClassifier,
    RetryManager,
    determine_error_type,
    generate_error_id,
)


@pytest.fixture
def classifier():
    return ErrorClassifier(GenerationConfig(), RetryManager(max_retry_attempts=3))


@pytest.mark.parametrize(
    "error,expected",
    [
        (Exception("Quota exceeded for requests"), ErrorType.QUOTA_EXCEEDED),
        (Exception("Rate limit reached, too many requests"), ErrorType.QUOTA_EXCEEDED),
        (Exception("Invalid API key provided"), ErrorType.QUOTA_EXCEEDED),
        (ValueError("Response blocked by safety content filter"), ErrorType.CONTENT_ISSUE),
        (TimeoutError("Model call timed out after 60s"), ErrorType.NETWORK_ERROR),
        (ConnectionError("Connection refused"), ErrorType.NETWORK_ERROR),
        (Exception("CORS policy blocked the request"), ErrorType.PERMISSION_DENIED),
        (Exception("Something odd"), ErrorType.UNKNOWN),
    ],
)
def test_determine_error_type(error, expected):
    assert determine_error_type(error) is expected


def test_http_status_is_considered():
    request = httpx.Request("POST", "http://llm.local/v1/chat/completions")
    response = httpx.Response(429, request=request)
    error = httpx.HTTPStatusError("Server said no", request=request, response=response)
    assert determine_error_type(error) is ErrorType.QUOTA_EXCEEDED


def test_classification_is_deterministic_with_fresh_ids(classifier):
    error = Exception("Quota exceeded for requests")
    first = classifier.classify(error, {"section": "warmup"})
    second = classifier.classify(error, {"section": "warmup"})
    assert first.type is second.type is ErrorType.QUOTA_EXCEEDED
    assert first.error_id != second.error_id
    assert first.error_id.startswith("ERR_")
    assert "timestamp" in first.context
    assert first.context["section"] == "warmup"


def test_quota_error_is_retryable_with_primary_retry(classifier):
    classified = classifier.classify(Exception("Quota exceeded for requests"))
    assert classified.can_retry
    primary = [o for o in classified.recovery_options if o.primary]
    assert primary[0].action is RecoveryAction.RETRY
    actions = {o.action for o in classified.recovery_options}
    assert RecoveryAction.COPY_PASTE_FALLBACK in actions
    assert RecoveryAction.CONTACT_SUPPORT in actions


def test_permission_error_not_retryable(classifier):
    classified = classifier.classify(Exception("CORS policy blocked the request"))
    assert classified.type is ErrorType.PERMISSION_DENIED
    assert not classified.can_retry
    actions = [o.action for o in classified.recovery_options]
    assert RecoveryAction.RETRY not in actions
    assert RecoveryAction.MANUAL_SELECTION in actions
    assert RecoveryAction.TRY_DIFFERENT_PAGE in actions
    manual = next(o for o in classified.recovery_options if o.action is RecoveryAction.MANUAL_SELECTION)
    assert manual.primary


def test_content_issue_retry_depends_on_recoverable(classifier):
    recoverable = SectionRejectedError("vocabulary", "wrong count", recoverable=True)
    unrecoverable = SectionRejectedError("vocabulary", "refused", recoverable=False)
    assert classifier.classify(recoverable).type is ErrorType.CONTENT_ISSUE
    assert classifier.classify(recoverable).can_retry
    assert not classifier.classify(unrecoverable).can_retry


def test_gate_error_is_content_issue(classifier):
    validation = ValidationResult(
        is_valid=False,
        issues=[ValidationIssue(type="insufficient_content", message="Content is too short")],
        score=10,
    )
    classified = classifier.classify(ContentGateError(validation))
    assert classified.type is ErrorType.CONTENT_ISSUE
    assert not classified.can_retry
    assert any(o.primary for o in classified.recovery_options)


def test_retry_disabled(classifier):
    no_retry = ErrorClassifier(GenerationConfig(enable_retry=False))
    assert not no_retry.classify(Exception("network unreachable")).can_retry


def test_every_type_has_a_primary_option(classifier):
    for message in ("quota", "safety", "timeout", "forbidden", "weird"):
        classified = classifier.classify(Exception(message))
        assert sum(1 for o in classified.recovery_options if o.primary) >= 1


def test_retry_delays_and_reset():
    manager = RetryManager(max_retry_attempts=3, base_delay_ms=1000)
    delays = []
    for _ in range(3):
        delays.append(manager.get_retry_delay("example.com"))
        manager.record_retry_attempt("example.com")
    assert delays == [1000, 2000, 4000]
    assert not manager.can_retry("example.com")
    assert manager.can_retry("other.com")
    manager.clear_retry_attempts("example.com")
    assert manager.get_retry_delay("example.com") == 1000
    assert manager.can_retry("example.com")


def test_unlimited_retries():
    manager = RetryManager(max_retry_attempts=None)
    for _ in range(10):
        manager.record_retry_attempt("s")
    assert manager.can_retry("s")


def test_retry_cap_blocks_classification_retry():
    manager = RetryManager(max_retry_attempts=1)
    classifier = ErrorClassifier(GenerationConfig(), manager)
    manager.record_retry_attempt("site")
    classified = classifier.classify(Exception("Connection reset"), {"session_id": "site"})
    assert classified.type is ErrorType.NETWORK_ERROR
    assert not classified.can_retry


def test_user_message_hides_technical_details_by_default(classifier):
    classified = classifier.classify(Exception("Quota exceeded for requests"))
    message = classifier.generate_user_message(classified)
    assert message.error_id == classified.error_id
    assert message.actionable_steps
    assert message.technical_details is None
    assert message.support_contact

    verbose = ErrorClassifier(GenerationConfig(show_technical_details=True))
    detailed = verbose.generate_user_message(verbose.classify(Exception("Quota exceeded")))
    assert "Quota exceeded" in detailed.technical_details


def test_support_message_includes_stack_trace(classifier):
    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        classified = classifier.classify(exc, {"section": "grammar"})
    support = classifier.generate_support_message(classified)
    assert support.error_type is ErrorType.UNKNOWN
    assert "RuntimeError" in support.stack_trace
    assert support.context["section"] == "grammar"
    assert support.to_wire()["errorId"] == classified.error_id


def test_generate_error_id_format():
    error_id = generate_error_id()
    prefix, stamp, suffix = error_id.split("_")
    assert prefix == "ERR"
    assert stamp.isalnum()
    assert error_id == error_id.upper()
    assert len(suffix) == 8


def test_exhausted_quota_offers_wait_and_retry():
    manager = RetryManager(max_retry_attempts=1)
    classifier = ErrorClassifier(GenerationConfig(), manager)
    manager.record_retry_attempt("site")
    classified = classifier.classify(Exception("Rate limit reached"), {"session_id": "site"})
    assert not classified.can_retry
    primary = [o for o in classified.recovery_options if o.primary]
    assert [o.action for o in primary] == [RecoveryAction.WAIT_AND_RETRY]
    actions = {o.action for o in classified.recovery_options}
    assert RecoveryAction.RETRY not in actions
    assert RecoveryAction.CONTACT_SUPPORT in actions


def test_retryable_quota_has_no_wait_option(classifier):
    classified = classifier.classify(Exception("Quota exceeded for requests"))
    actions = {o.action for o in classified.recovery_options}
    assert RecoveryAction.WAIT_AND_RETRY not in actions
