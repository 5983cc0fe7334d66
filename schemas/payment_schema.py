from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class _PhoneNumberIn(BaseModel):
    phone_number: str = Field(min_length=8, max_length=20, alias="phoneNumber")

    model_config = {"populate_by_name": True}

    @field_validator("phone_number")
    @classmethod
    def strip_phone_number(cls, value: str) -> str:
        return value.strip()


class PayinIn(_PhoneNumberIn):
    amount: Decimal = Field(gt=0)
    reason: str = Field(min_length=1, max_length=160)
    currency: str = Field(default="XAF", min_length=3, max_length=3)
    reference: str | None = Field(default=None, max_length=64)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class PayoutIn(PayinIn):
    customer_name: str | None = Field(default=None, max_length=120, alias="customerName")


class StatusCheckIn(_PhoneNumberIn):
    verification_token: str = Field(min_length=1, alias="verificationToken")


class PaymentResultOut(BaseModel):
    success: bool
    status_code: int = Field(serialization_alias="statusCode")
    verification_token: str | None = Field(default=None, serialization_alias="verificationToken")
    message: str
    provider_response: Any | None = Field(default=None, serialization_alias="providerResponse")


class StatusCheckOut(BaseModel):
    success: bool
    status_code: int = Field(serialization_alias="statusCode")
    transaction_status: Literal["pending", "processing", "completed", "failed"] | None = Field(
        default=None,
        serialization_alias="transactionStatus",
    )
    transaction_amount: Decimal | None = Field(default=None, serialization_alias="transactionAmount")
    failure_reason: str | None = Field(default=None, serialization_alias="failureReason")
    should_retry: bool = Field(serialization_alias="shouldRetry")
    message: str
    provider_response: Any | None = Field(default=None, serialization_alias="providerResponse")


class CallbackOut(BaseModel):
    provider: str
    kind: Literal["payin", "payout"]
    reference: str | None = None
    native_status: str | None = Field(default=None, serialization_alias="nativeStatus")
    transaction_status: Literal["pending", "processing", "completed", "failed"] = Field(
        serialization_alias="transactionStatus",
    )
    should_retry: bool = Field(serialization_alias="shouldRetry")
    failure_reason: str | None = Field(default=None, serialization_alias="failureReason")
