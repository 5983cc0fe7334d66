from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any

from core.errors import AppException, ErrorCode, payment_failed, payments_not_configured, webhook_invalid
from core.payments import PaymentIntent, PaymentManager, PaymentProviderName, PaymentResult, StatusCheckResult
from core.payments.failure_reasons import failure_code, parse_failure_reason
from core.payments.retry import should_retry
from core.payments.signatures import signature_from_headers, verify_signature
from core.payments.status_mapping import map_status
from core.payments.types import TransactionStatus
from schemas.payment_schema import (
    CallbackOut,
    PaymentResultOut,
    PayinIn,
    PayoutIn,
    StatusCheckIn,
    StatusCheckOut,
)

logger = logging.getLogger(__name__)


def _get_payment_manager() -> PaymentManager:
    try:
        return PaymentManager.get_instance()
    except RuntimeError as err:
        raise payments_not_configured(details=str(err)) from err


def _retry_advice(
    transaction_status: TransactionStatus | None,
    native_status: str | None,
    reason_code: str | None,
) -> bool:
    if transaction_status in {TransactionStatus.PENDING, TransactionStatus.PROCESSING}:
        return True
    if transaction_status == TransactionStatus.FAILED:
        # Only the provider's failure code can make a failure retryable.
        return should_retry(reason_code or native_status, reason_code)
    return False


def _result_out(result: PaymentResult) -> PaymentResultOut:
    if not result.success:
        raise payment_failed(result)
    return PaymentResultOut(
        success=True,
        status_code=result.status_code,
        verification_token=result.verification_token,
        message=result.message,
        provider_response=result.raw_provider_response,
    )


def _status_out(result: StatusCheckResult) -> StatusCheckOut:
    if not result.success:
        raise payment_failed(result)
    return StatusCheckOut(
        success=True,
        status_code=result.status_code,
        transaction_status=result.transaction_status.value if result.transaction_status else None,
        transaction_amount=result.transaction_amount,
        failure_reason=result.failure_reason,
        should_retry=_retry_advice(result.transaction_status, None, result.failure_code),
        message=result.message,
        provider_response=result.raw_provider_response,
    )


async def initiate_payin(payload: PayinIn) -> PaymentResultOut:
    intent = PaymentIntent(
        phone_number=payload.phone_number,
        amount=payload.amount,
        reason=payload.reason,
        currency=payload.currency,
        reference=payload.reference,
    )
    result = await _get_payment_manager().orchestrator.payin(intent)
    return _result_out(result)


async def initiate_payout(payload: PayoutIn) -> PaymentResultOut:
    intent = PaymentIntent(
        phone_number=payload.phone_number,
        amount=payload.amount,
        reason=payload.reason,
        currency=payload.currency,
        reference=payload.reference,
        customer_name=payload.customer_name,
    )
    result = await _get_payment_manager().orchestrator.payout(intent)
    return _result_out(result)


async def check_payment_status(payload: StatusCheckIn) -> StatusCheckOut:
    result = await _get_payment_manager().orchestrator.check_payment(
        payload.verification_token,
        payload.phone_number,
    )
    return _status_out(result)


async def check_payout_status(payload: StatusCheckIn) -> StatusCheckOut:
    result = await _get_payment_manager().orchestrator.check_payout_status(
        payload.verification_token,
        payload.phone_number,
    )
    return _status_out(result)


def calculate_fee_breakdown(amount: Decimal) -> dict[str, str]:
    return _get_payment_manager().fee_calculator.calculate(amount).as_dict()


def _callback_fields(provider: PaymentProviderName, payload: dict[str, Any], kind: str) -> CallbackOut:
    if provider == PaymentProviderName.PAWAPAY:
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        if data.get("payoutId"):
            kind = "payout"
        reference = data.get("depositId") or data.get("payoutId")
        native_status = data.get("status")
        failure = data.get("failureReason")
        failure_reason = parse_failure_reason(failure) if failure else None
        retry_reason = failure_code(failure)
    elif provider == PaymentProviderName.ORANGE:
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        reference = data.get("payToken")
        native_status = data.get("status")
        failure_reason = data.get("confirmtxnmessage") or data.get("message")
        retry_reason = failure_reason
    else:
        reference = payload.get("referenceId") or payload.get("externalId")
        native_status = payload.get("status")
        reason = payload.get("reason")
        if isinstance(reason, dict):
            reason = reason.get("code") or reason.get("message")
        failure_reason = reason
        retry_reason = reason

    transaction_status = map_status(provider, native_status)
    if transaction_status != TransactionStatus.FAILED:
        failure_reason = None

    return CallbackOut(
        provider=provider.value,
        kind=kind,
        reference=str(reference) if reference else None,
        native_status=str(native_status) if native_status else None,
        transaction_status=transaction_status.value,
        should_retry=_retry_advice(transaction_status, native_status, retry_reason),
        failure_reason=str(failure_reason) if failure_reason else None,
    )


async def process_callback(
    *,
    provider_name: str,
    body: bytes,
    headers: dict[str, str],
    kind: str = "payin",
) -> CallbackOut:
    """Verify a provider callback and translate it into the shared status vocabulary.

    Persisting the outcome is left to the caller; the same callback may be
    delivered more than once.
    """
    try:
        provider = PaymentProviderName(provider_name.lower())
    except ValueError as err:
        raise AppException(
            status_code=404,
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message=f"Unsupported payment provider '{provider_name}'",
        ) from err

    manager = _get_payment_manager()
    secret = manager.webhook_secret(provider)
    if secret:
        if not verify_signature(body, secret, signature_from_headers(headers)):
            raise webhook_invalid("Invalid callback signature", details={"provider": provider.value})
    elif manager.payment_environment == "production":
        raise webhook_invalid("Callback secret is not configured", details={"provider": provider.value})
    else:
        logger.warning("Accepting unsigned callback outside production", extra={"provider": provider.value})

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise AppException(
            status_code=400,
            code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
            message="Invalid callback payload",
            details=str(err),
        ) from err
    if not isinstance(payload, dict):
        raise AppException(
            status_code=400,
            code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
            message="Invalid callback payload",
        )

    callback = _callback_fields(provider, payload, kind)
    logger.info(
        "Payment callback received",
        extra={
            "provider": provider.value,
            "kind": callback.kind,
            "reference": callback.reference,
            "transaction_status": callback.transaction_status,
        },
    )
    return callback
