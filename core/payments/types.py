from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any

ZERO_DECIMAL_CURRENCIES = frozenset({"XAF", "XOF"})


class PaymentProviderName(str, Enum):
    MTN = "mtn"
    ORANGE = "orange"
    PAWAPAY = "pawapay"


class Operator(str, Enum):
    MTN = "mtn"
    ORANGE = "orange"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CredentialClass(str, Enum):
    COLLECTION = "collection"
    DISBURSEMENT = "disbursement"
    DEFAULT = "default"


def format_amount(amount: Decimal | int | float | str, currency: str) -> str:
    """Render an amount in the representation providers accept.

    Zero-decimal currencies are floored to a whole number (``1234.99 XAF``
    becomes ``"1234"``); other currencies are truncated to two decimals.
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return str(value.to_integral_value(rounding=ROUND_FLOOR))
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_DOWN))


@dataclass(frozen=True)
class PaymentIntent:
    phone_number: str
    amount: Decimal
    reason: str
    currency: str = "XAF"
    reference: str | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class PaymentResult:
    status_code: int
    success: bool
    message: str
    verification_token: str | None = None
    raw_provider_response: Any | None = None
    error_code: str | None = None

    @classmethod
    def accepted(
        cls,
        *,
        verification_token: str,
        message: str = "Payment request accepted",
        status_code: int = 202,
        raw_provider_response: Any | None = None,
    ) -> "PaymentResult":
        return cls(
            status_code=status_code,
            success=True,
            message=message,
            verification_token=verification_token,
            raw_provider_response=raw_provider_response,
        )

    @classmethod
    def failure(
        cls,
        *,
        status_code: int,
        message: str,
        error_code: str | None = None,
        raw_provider_response: Any | None = None,
    ) -> "PaymentResult":
        return cls(
            status_code=status_code,
            success=False,
            message=message,
            error_code=error_code,
            raw_provider_response=raw_provider_response,
        )


@dataclass(frozen=True)
class StatusCheckResult:
    status_code: int
    success: bool
    message: str
    transaction_status: TransactionStatus | None = None
    transaction_amount: Decimal | None = None
    raw_provider_response: Any | None = None
    not_found: bool = False
    failure_reason: str | None = None
    failure_code: str | None = None
    error_code: str | None = None

    @classmethod
    def failure(
        cls,
        *,
        status_code: int,
        message: str,
        error_code: str | None = None,
        raw_provider_response: Any | None = None,
        not_found: bool = False,
    ) -> "StatusCheckResult":
        return cls(
            status_code=status_code,
            success=False,
            message=message,
            error_code=error_code,
            raw_provider_response=raw_provider_response,
            not_found=not_found,
        )


@dataclass(frozen=True)
class CachedToken:
    access_token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now


@dataclass(frozen=True)
class AuthFailure:
    provider: PaymentProviderName
    credential_class: CredentialClass
    reason: str
    details: dict[str, Any] = field(default_factory=dict)
