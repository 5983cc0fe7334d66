from __future__ import annotations

import json
from typing import Any

GENERIC_FAILURE_MESSAGE = "The payment failed. Please try again."
INSUFFICIENT_BALANCE_MESSAGE = (
    "Your balance is too low to complete this payment. Please top up your account and try again."
)


def failure_code(failure_reason: Any) -> str | None:
    if isinstance(failure_reason, str):
        try:
            failure_reason = json.loads(failure_reason)
        except ValueError:
            return None
    if isinstance(failure_reason, dict):
        code = failure_reason.get("failureCode")
        return str(code) if code else None
    return None


def parse_failure_reason(failure_reason: Any) -> str:
    """Turn a pawaPay ``failureReason`` into a message safe to show a customer.

    The field arrives as an object, as a JSON-encoded string, or as plain
    text depending on the endpoint.
    """
    if not failure_reason:
        return GENERIC_FAILURE_MESSAGE

    if isinstance(failure_reason, str):
        try:
            decoded = json.loads(failure_reason)
        except ValueError:
            return failure_reason
        return parse_failure_reason(decoded)

    if isinstance(failure_reason, dict):
        code = failure_reason.get("failureCode")
        message = failure_reason.get("failureMessage")
        if code == "INSUFFICIENT_BALANCE":
            return INSUFFICIENT_BALANCE_MESSAGE
        if message:
            return str(message)
        if code:
            return f"The payment failed with error code {code}. Please try again."

    return GENERIC_FAILURE_MESSAGE
