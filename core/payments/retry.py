from __future__ import annotations

RETRYABLE_ERRORS: frozenset[str] = frozenset(
    {
        "PENDING",
        "ONGOING",
        "DELAYED",
        "SERVICE_UNAVAILABLE",
        "INTERNAL_PROCESSING_ERROR",
        "INTERNAL_ERROR",
        "TIMEOUT",
        "NETWORK_ERROR",
    }
)

PERMANENT_ERRORS: frozenset[str] = frozenset(
    {
        "FAILED",
        "REJECTED",
        "EXPIRED",
        "NOT_ENOUGH_FUNDS",
        "INSUFFICIENT_BALANCE",
        "PAYEE_NOT_ALLOWED_TO_RECEIVE",
        "PAYER_NOT_ALLOWED",
        "NOT_ALLOWED",
        "INVALID_CURRENCY",
        "INVALID_CALLBACK_URL_HOST",
        "ACCOUNT_NOT_FOUND",
        "ACCOUNT_HOLDER_NOT_FOUND",
        "ZERO_BALANCE",
        "NEGATIVE_BALANCE",
        "NOT_ALLOWED_TARGET_ENVIRONMENT",
        "RESOURCE_NOT_FOUND",
        "INVALID_PHONE_NUMBER",
        "UNSUPPORTED_OPERATOR",
    }
)


def should_retry(status: str | None, reason: str | None = None) -> bool:
    """Advise whether a failed transaction is worth retrying.

    The status is checked first; when it is not conclusive the reason text
    is scanned for retryable codes, then for permanent ones. Anything
    unrecognized is not retried.
    """
    normalized_status = (status or "").strip().upper()
    if normalized_status in RETRYABLE_ERRORS:
        return True
    if normalized_status in PERMANENT_ERRORS:
        return False

    normalized_reason = (reason or "").upper()
    if normalized_reason:
        if any(code in normalized_reason for code in RETRYABLE_ERRORS):
            return True
        if any(code in normalized_reason for code in PERMANENT_ERRORS):
            return False

    return False


def is_permanent_failure(status: str | None, reason: str | None = None) -> bool:
    return not should_retry(status, reason)
