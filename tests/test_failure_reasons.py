from __future__ import annotations

import json

from core.payments.failure_reasons import (
    GENERIC_FAILURE_MESSAGE,
    INSUFFICIENT_BALANCE_MESSAGE,
    failure_code,
    parse_failure_reason,
)


def test_insufficient_balance_gets_customer_friendly_message():
    reason = {"failureCode": "INSUFFICIENT_BALANCE", "failureMessage": "Payer balance too low"}

    assert parse_failure_reason(reason) == INSUFFICIENT_BALANCE_MESSAGE


def test_provider_message_is_preferred_over_code():
    reason = {"failureCode": "PAYER_LIMIT_REACHED", "failureMessage": "Daily limit reached"}

    assert parse_failure_reason(reason) == "Daily limit reached"


def test_code_without_message_is_described():
    assert parse_failure_reason({"failureCode": "OTHER_ERROR"}) == (
        "The payment failed with error code OTHER_ERROR. Please try again."
    )


def test_json_encoded_reason_is_decoded():
    encoded = json.dumps({"failureCode": "INSUFFICIENT_BALANCE"})

    assert parse_failure_reason(encoded) == INSUFFICIENT_BALANCE_MESSAGE
    assert failure_code(encoded) == "INSUFFICIENT_BALANCE"


def test_plain_text_reason_is_returned_as_is():
    assert parse_failure_reason("Customer cancelled") == "Customer cancelled"
    assert failure_code("Customer cancelled") is None


def test_empty_reason_falls_back_to_generic_message():
    assert parse_failure_reason(None) == GENERIC_FAILURE_MESSAGE
    assert parse_failure_reason({}) == GENERIC_FAILURE_MESSAGE
    assert parse_failure_reason([1, 2]) == GENERIC_FAILURE_MESSAGE
