from __future__ import annotations

from typing import Protocol

from core.payments.http import ProviderTransportError
from core.payments.phone import PhoneClassificationError
from core.payments.types import AuthFailure, PaymentIntent, PaymentResult, StatusCheckResult


class PaymentProvider(Protocol):
    provider_name: str

    async def payin(self, intent: PaymentIntent) -> PaymentResult:
        ...

    async def payout(self, intent: PaymentIntent) -> PaymentResult:
        ...

    async def check_payment(self, verification_token: str) -> StatusCheckResult:
        ...

    async def check_payout_status(self, verification_token: str) -> StatusCheckResult:
        ...


def auth_failure_result(failure: AuthFailure) -> PaymentResult:
    return PaymentResult.failure(
        status_code=502,
        message=f"Unable to authenticate with {failure.provider.value}",
        error_code="AUTHENTICATION_FAILED",
        raw_provider_response={"reason": failure.reason, **failure.details},
    )


def auth_failure_status(failure: AuthFailure) -> StatusCheckResult:
    return StatusCheckResult.failure(
        status_code=502,
        message=f"Unable to authenticate with {failure.provider.value}",
        error_code="AUTHENTICATION_FAILED",
        raw_provider_response={"reason": failure.reason, **failure.details},
    )


def transport_failure_result(err: ProviderTransportError) -> PaymentResult:
    return PaymentResult.failure(status_code=err.status_code, message=err.message, error_code=err.error_code)


def transport_failure_status(err: ProviderTransportError) -> StatusCheckResult:
    return StatusCheckResult.failure(status_code=err.status_code, message=err.message, error_code=err.error_code)


def invalid_phone_result(err: PhoneClassificationError) -> PaymentResult:
    return PaymentResult.failure(status_code=400, message=err.message, error_code=err.error_code)


def rejected_status_code(status_code: int) -> int:
    return status_code if status_code >= 400 else 502
