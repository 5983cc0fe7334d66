from __future__ import annotations

from core.payments.retry import PERMANENT_ERRORS, RETRYABLE_ERRORS, is_permanent_failure, should_retry


def test_transient_statuses_are_retried():
    assert should_retry("PENDING") is True
    assert should_retry("service_unavailable") is True
    assert should_retry("TIMEOUT") is True


def test_permanent_statuses_are_not_retried():
    assert should_retry("NOT_ENOUGH_FUNDS") is False
    assert should_retry("FAILED") is False
    assert is_permanent_failure("PAYER_NOT_ALLOWED") is True


def test_reason_text_is_scanned_when_status_is_inconclusive():
    assert should_retry("UNKNOWN", "Upstream INTERNAL_PROCESSING_ERROR, try later") is True
    assert should_retry(None, "payer_not_allowed by operator") is False


def test_retryable_code_in_reason_outranks_permanent_code():
    assert should_retry("UNKNOWN", "NOT_ENOUGH_FUNDS, request still PENDING") is True
    assert should_retry(None, "PAYER_NOT_ALLOWED after SERVICE_UNAVAILABLE") is True
    assert should_retry("", "PAYEE_NOT_ALLOWED_TO_RECEIVE") is False


def test_unknown_inputs_default_to_no_retry():
    assert should_retry(None) is False
    assert should_retry("", "") is False
    assert should_retry("WEIRD", "nothing recognizable") is False
    assert is_permanent_failure("WEIRD") is True


def test_code_sets_are_disjoint():
    assert not RETRYABLE_ERRORS & PERMANENT_ERRORS
