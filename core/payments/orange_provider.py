from __future__ import annotations

import base64
import logging
import secrets
import string
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from core.payments.credentials import OrangeCredentials
from core.payments.http import ProviderHttpClient, ProviderTransportError, provider_message, read_json
from core.payments.phone import OperatorClassifier, PhoneClassificationError, mask_phone, sanitize_reason
from core.payments.provider import (
    PaymentProvider,
    auth_failure_result,
    auth_failure_status,
    invalid_phone_result,
    rejected_status_code,
    transport_failure_result,
    transport_failure_status,
)
from core.payments.status_mapping import map_status
from core.payments.test_mode import TestModeStrategy
from core.payments.tokens import OrangeTokenManager
from core.payments.types import (
    AuthFailure,
    CredentialClass,
    PaymentIntent,
    PaymentProviderName,
    PaymentResult,
    StatusCheckResult,
    TransactionStatus,
    format_amount,
)

logger = logging.getLogger(__name__)

ORDER_ID_LENGTH = 15
_ORDER_ID_ALPHABET = string.ascii_letters + string.digits


class OrangeTransactionData(BaseModel):
    model_config = ConfigDict(extra="allow")

    payToken: str | None = None
    status: str | None = None
    amount: Decimal | None = None
    txnid: str | None = None
    confirmtxnmessage: str | None = None
    inittxnmessage: str | None = None


class OrangeEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: str | None = None
    data: OrangeTransactionData | None = None


def _order_id() -> str:
    return "".join(secrets.choice(_ORDER_ID_ALPHABET) for _ in range(ORDER_ID_LENGTH))


class OrangeMoneyProvider(PaymentProvider):
    """Orange Money Web Payment: merchant payments for payins, cash-in for payouts.

    Both flows are two-step: an ``init`` call reserves a ``payToken`` that
    becomes the verification token, then the ``pay`` call submits the order.
    Orange exposes no merchant balance endpoint, so payouts go straight to
    cash-in without a balance pre-check.
    """

    provider_name = PaymentProviderName.ORANGE.value

    def __init__(
        self,
        *,
        credentials: OrangeCredentials,
        http: ProviderHttpClient,
        token_manager: OrangeTokenManager,
        classifier: OperatorClassifier,
        test_mode: TestModeStrategy | None = None,
    ) -> None:
        self._credentials = credentials
        self._http = http
        self._tokens = token_manager
        self._classifier = classifier
        self._test_mode = test_mode

    def _headers(self, access_token: str) -> dict[str, str]:
        basic = f"{self._credentials.api_username}:{self._credentials.api_password}"
        return {
            "Authorization": f"Bearer {access_token}",
            "X-AUTH-TOKEN": base64.b64encode(basic.encode("utf-8")).decode("ascii"),
        }

    async def _submit(self, intent: PaymentIntent, *, flow: str, with_callback: bool) -> PaymentResult:
        missing = self._credentials.missing_merchant_fields()
        if missing:
            return PaymentResult.failure(
                status_code=500,
                message="Orange merchant account is not configured",
                error_code="AUTHENTICATION_FAILED",
                raw_provider_response={"missing": missing},
            )

        try:
            msisdn = self._classifier.to_msisdn(intent.phone_number)
        except PhoneClassificationError as err:
            return invalid_phone_result(err)

        token = await self._tokens.get_token(CredentialClass.DEFAULT)
        if isinstance(token, AuthFailure):
            return auth_failure_result(token)

        headers = self._headers(token.access_token)
        try:
            init_response = await self._http.request("POST", f"/{flow}/init", headers=headers)
        except ProviderTransportError as err:
            return transport_failure_result(err)

        init_payload = read_json(init_response)
        pay_token = None
        if init_response.status_code == 200:
            try:
                envelope = OrangeEnvelope.model_validate(init_payload)
                pay_token = envelope.data.payToken if envelope.data else None
            except ValidationError:
                pay_token = None
        if not pay_token:
            return PaymentResult.failure(
                status_code=rejected_status_code(init_response.status_code),
                message=provider_message(init_payload, "Unable to initialize Orange Money payment"),
                raw_provider_response=init_payload,
            )

        body: dict[str, Any] = {
            "channelUserMsisdn": self._credentials.merchant_number,
            "amount": format_amount(intent.amount, intent.currency),
            "subscriberMsisdn": msisdn,
            "pin": self._credentials.pin_code,
            "orderId": intent.reference or _order_id(),
            "description": sanitize_reason(intent.reason),
            "payToken": pay_token,
        }
        if with_callback and self._credentials.callback_url:
            body["notifUrl"] = self._credentials.callback_url

        logger.info("Submitting Orange %s", flow, extra={"phone": mask_phone(msisdn), "pay_token": pay_token})
        try:
            response = await self._http.request("POST", f"/{flow}/pay", headers=headers, json=body)
        except ProviderTransportError as err:
            return transport_failure_result(err)

        payload = read_json(response)
        native_status = None
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            native_status = payload["data"].get("status")
        if response.status_code != 200 or map_status(PaymentProviderName.ORANGE, native_status) == TransactionStatus.FAILED:
            return PaymentResult(
                status_code=rejected_status_code(response.status_code),
                success=False,
                message=provider_message(payload, "Orange Money rejected the payment"),
                verification_token=pay_token,
                raw_provider_response=payload,
                error_code=str(native_status).upper() if native_status else None,
            )

        return PaymentResult.accepted(
            verification_token=pay_token,
            status_code=200,
            message="Payment initiated successfully",
            raw_provider_response=payload,
        )

    async def payin(self, intent: PaymentIntent) -> PaymentResult:
        if self._test_mode is not None:
            simulated = self._test_mode.simulate(intent)
            if simulated is not None:
                return simulated
            intent = self._test_mode.prepare_payin(intent)
        return await self._submit(intent, flow="mp", with_callback=True)

    async def payout(self, intent: PaymentIntent) -> PaymentResult:
        if self._test_mode is not None:
            simulated = self._test_mode.simulate(intent)
            if simulated is not None:
                return simulated
            intent = self._test_mode.prepare_payout(intent)
        return await self._submit(intent, flow="cashin", with_callback=False)

    async def _fetch_status(self, flow: str, pay_token: str) -> StatusCheckResult:
        token = await self._tokens.get_token(CredentialClass.DEFAULT)
        if isinstance(token, AuthFailure):
            return auth_failure_status(token)

        try:
            response = await self._http.request(
                "GET",
                f"/{flow}/paymentstatus/{pay_token}",
                headers=self._headers(token.access_token),
            )
        except ProviderTransportError as err:
            return transport_failure_status(err)

        payload = read_json(response)
        if response.status_code == 404:
            return StatusCheckResult.failure(
                status_code=404,
                message="Transaction not found",
                error_code="RESOURCE_NOT_FOUND",
                raw_provider_response=payload,
                not_found=True,
            )
        if response.status_code != 200:
            return StatusCheckResult.failure(
                status_code=rejected_status_code(response.status_code),
                message=provider_message(payload, "Unable to verify Orange Money transaction"),
                raw_provider_response=payload,
            )

        try:
            envelope = OrangeEnvelope.model_validate(payload)
        except ValidationError:
            envelope = None
        if envelope is None or envelope.data is None:
            return StatusCheckResult.failure(
                status_code=502,
                message="Orange Money returned an unreadable transaction",
                raw_provider_response=payload,
            )

        transaction_status = map_status(PaymentProviderName.ORANGE, envelope.data.status)
        failure_reason = None
        if transaction_status == TransactionStatus.FAILED:
            failure_reason = envelope.data.confirmtxnmessage or envelope.data.inittxnmessage
        # Orange has no separate error code, only the transaction message.
        return StatusCheckResult(
            status_code=200,
            success=True,
            message=envelope.message or "Transaction verified",
            transaction_status=transaction_status,
            transaction_amount=envelope.data.amount,
            raw_provider_response=payload,
            failure_reason=failure_reason,
            failure_code=failure_reason,
        )

    async def check_payment(self, verification_token: str) -> StatusCheckResult:
        return await self._fetch_status("mp", verification_token)

    async def check_payout_status(self, verification_token: str) -> StatusCheckResult:
        return await self._fetch_status("cashin", verification_token)
