from __future__ import annotations

import re
import unicodedata
from typing import Mapping

from core.payments.types import Operator

CAMEROON_CALLING_CODE = "237"
NATIONAL_NUMBER_LENGTH = 9

# First three digits of the national number. Ranges get reassigned by the
# regulator, so keep this table in sync with the operators' published plans.
OPERATOR_PREFIX_RULES: dict[Operator, tuple[str, ...]] = {
    Operator.MTN: ("67[0-9]", "68[0-4]", "65[0-4]"),
    Operator.ORANGE: ("69[0-9]", "65[5-9]"),
}

_NON_DIGITS = re.compile(r"\D")
_NON_LETTERS = re.compile(r"[^a-zA-Z]")
_WHITESPACE = re.compile(r"\s+")


class PhoneClassificationError(ValueError):
    error_code = "INVALID_PHONE_NUMBER"

    def __init__(self, message: str, *, phone_number: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.phone_number = phone_number


class InvalidPhoneNumberError(PhoneClassificationError):
    error_code = "INVALID_PHONE_NUMBER"


class UnsupportedOperatorError(PhoneClassificationError):
    error_code = "UNSUPPORTED_OPERATOR"


def mask_phone(phone_number: str | None) -> str:
    digits = _NON_DIGITS.sub("", phone_number or "")
    if len(digits) <= 5:
        return "***"
    return f"{digits[:5]}..."


def sanitize_reason(text: str | None, fallback: str = "Payment") -> str:
    """Strip diacritics and anything that is not an ASCII letter.

    Orange rejects descriptions carrying accents, digits or punctuation, so
    every provider receives the same cleaned text.
    """
    if not text:
        return fallback
    decomposed = unicodedata.normalize("NFD", text)
    without_marks = "".join(char for char in decomposed if not unicodedata.combining(char))
    letters_only = _NON_LETTERS.sub(" ", without_marks)
    cleaned = _WHITESPACE.sub(" ", letters_only).strip()
    return cleaned or fallback


class OperatorClassifier:
    def __init__(
        self,
        prefix_rules: Mapping[Operator, tuple[str, ...]] | None = None,
        *,
        country_code: str = CAMEROON_CALLING_CODE,
        national_length: int = NATIONAL_NUMBER_LENGTH,
    ) -> None:
        rules = prefix_rules if prefix_rules is not None else OPERATOR_PREFIX_RULES
        self.country_code = country_code
        self.national_length = national_length
        self._patterns: dict[Operator, tuple[re.Pattern[str], ...]] = {
            operator: tuple(re.compile(pattern) for pattern in patterns)
            for operator, patterns in rules.items()
        }
        self._ensure_disjoint()

    def _ensure_disjoint(self) -> None:
        for value in range(1000):
            prefix = f"{value:03d}"
            owners = [operator for operator in self._patterns if self._matches(operator, prefix)]
            if len(owners) > 1:
                names = ", ".join(owner.value for owner in owners)
                raise ValueError(f"Prefix {prefix} is claimed by more than one operator: {names}")

    def _matches(self, operator: Operator, national_number: str) -> bool:
        prefix = national_number[:3]
        return any(pattern.fullmatch(prefix) for pattern in self._patterns[operator])

    def national_number(self, phone_number: str) -> str | None:
        digits = _NON_DIGITS.sub("", phone_number or "")
        full_length = len(self.country_code) + self.national_length
        if digits.startswith(self.country_code) and len(digits) == full_length:
            digits = digits[len(self.country_code):]
        if len(digits) != self.national_length:
            return None
        return digits

    def classify(self, phone_number: str) -> Operator:
        national = self.national_number(phone_number)
        if national is None:
            raise InvalidPhoneNumberError("Invalid phone number", phone_number=phone_number)

        for operator in self._patterns:
            if self._matches(operator, national):
                return operator

        raise UnsupportedOperatorError(
            "Unsupported operator for this phone number",
            phone_number=phone_number,
        )

    def to_msisdn(self, phone_number: str) -> str:
        national = self.national_number(phone_number)
        if national is None:
            raise InvalidPhoneNumberError("Invalid phone number", phone_number=phone_number)
        return f"{self.country_code}{national}"
