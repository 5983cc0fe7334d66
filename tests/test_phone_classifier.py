from __future__ import annotations

import pytest

from core.payments.phone import (
    InvalidPhoneNumberError,
    OperatorClassifier,
    UnsupportedOperatorError,
    mask_phone,
    sanitize_reason,
)
from core.payments.types import Operator


def test_classify_routes_international_mtn_number():
    classifier = OperatorClassifier()

    assert classifier.classify("+237670000000") == Operator.MTN


def test_classify_routes_orange_prefixes():
    classifier = OperatorClassifier()

    assert classifier.classify("699000001") == Operator.ORANGE
    assert classifier.classify("237 655 12 34 56") == Operator.ORANGE


def test_classify_splits_the_65_range_between_operators():
    classifier = OperatorClassifier()

    for digit in "01234":
        assert classifier.classify(f"65{digit}123456") == Operator.MTN
    for digit in "56789":
        assert classifier.classify(f"65{digit}123456") == Operator.ORANGE


def test_classify_accepts_every_mtn_and_orange_prefix():
    classifier = OperatorClassifier()

    mtn_prefixes = [f"67{digit}" for digit in "0123456789"] + [f"68{digit}" for digit in "01234"]
    orange_prefixes = [f"69{digit}" for digit in "0123456789"]
    for prefix in mtn_prefixes:
        assert classifier.classify(f"{prefix}000000") == Operator.MTN
    for prefix in orange_prefixes:
        assert classifier.classify(f"{prefix}000000") == Operator.ORANGE


def test_classify_rejects_unknown_prefix():
    classifier = OperatorClassifier()

    with pytest.raises(UnsupportedOperatorError) as exc_info:
        classifier.classify("123456789")

    assert exc_info.value.error_code == "UNSUPPORTED_OPERATOR"


def test_classify_rejects_numbers_in_the_unassigned_68_range():
    classifier = OperatorClassifier()

    with pytest.raises(UnsupportedOperatorError):
        classifier.classify("686000000")


@pytest.mark.parametrize("phone_number", ["12", "", "23767000000", "2376700000000", "abc"])
def test_classify_rejects_implausible_lengths(phone_number: str):
    classifier = OperatorClassifier()

    with pytest.raises(InvalidPhoneNumberError) as exc_info:
        classifier.classify(phone_number)

    assert exc_info.value.error_code == "INVALID_PHONE_NUMBER"


def test_to_msisdn_adds_country_code_once():
    classifier = OperatorClassifier()

    assert classifier.to_msisdn("670000000") == "237670000000"
    assert classifier.to_msisdn("+237 670 000 000") == "237670000000"


def test_overlapping_prefix_rules_are_rejected():
    with pytest.raises(ValueError):
        OperatorClassifier({Operator.MTN: ("67[0-9]",), Operator.ORANGE: ("6[6-7][0-9]",)})


def test_custom_prefix_rules_replace_defaults():
    classifier = OperatorClassifier({Operator.MTN: ("62[0-9]",), Operator.ORANGE: ("69[0-9]",)})

    assert classifier.classify("620000000") == Operator.MTN
    with pytest.raises(UnsupportedOperatorError):
        classifier.classify("670000000")


def test_sanitize_reason_strips_accents_and_punctuation():
    assert sanitize_reason("Réservation n°42: Douala → Yaoundé!") == "Reservation n Douala Yaounde"


def test_sanitize_reason_falls_back_when_nothing_remains():
    assert sanitize_reason("1234 !!") == "Payment"
    assert sanitize_reason(None) == "Payment"


def test_mask_phone_hides_subscriber_digits():
    assert mask_phone("+237670000000") == "23767..."
