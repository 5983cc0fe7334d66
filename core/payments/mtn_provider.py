from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from core.payments.credentials import MtnCredentials
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
from core.payments.tokens import MtnTokenManager
from core.payments.types import (
    AuthFailure,
    CredentialClass,
    PaymentIntent,
    PaymentProviderName,
    PaymentResult,
    StatusCheckResult,
    format_amount,
)

logger = logging.getLogger(__name__)

MTN_PRODUCTION_BASE_URL = "https://api.mtn.cm"
MTN_SANDBOX_BASE_URL = "https://sandbox.momodeveloper.mtn.com"


class MtnBalance(BaseModel):
    availableBalance: Decimal
    currency: str | None = None


class MtnTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    externalId: str | None = None
    financialTransactionId: str | None = None
    reason: Any | None = None


def _reason_text(reason: Any) -> str | None:
    if isinstance(reason, dict):
        return reason.get("code") or reason.get("message")
    return str(reason) if reason else None


class MtnMomoProvider(PaymentProvider):
    provider_name = PaymentProviderName.MTN.value

    def __init__(
        self,
        *,
        credentials: MtnCredentials,
        http: ProviderHttpClient,
        token_manager: MtnTokenManager,
        classifier: OperatorClassifier,
        test_mode: TestModeStrategy | None = None,
    ) -> None:
        self._credentials = credentials
        self._http = http
        self._tokens = token_manager
        self._classifier = classifier
        self._test_mode = test_mode

    def _headers(self, credential_class: CredentialClass, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "X-Target-Environment": self._credentials.target_environment,
            "Ocp-Apim-Subscription-Key": self._credentials.subscription_key(credential_class) or "",
        }

    def _request_body(self, intent: PaymentIntent, msisdn: str, reference: str, party: str) -> dict[str, Any]:
        reason = sanitize_reason(intent.reason)
        return {
            "amount": format_amount(intent.amount, intent.currency),
            "currency": intent.currency,
            "externalId": intent.reference or reference,
            party: {"partyIdType": "MSISDN", "partyId": msisdn},
            "payerMessage": reason,
            "payeeNote": reason,
        }

    async def payin(self, intent: PaymentIntent) -> PaymentResult:
        if self._test_mode is not None:
            simulated = self._test_mode.simulate(intent)
            if simulated is not None:
                return simulated
            intent = self._test_mode.prepare_payin(intent)

        try:
            msisdn = self._classifier.to_msisdn(intent.phone_number)
        except PhoneClassificationError as err:
            return invalid_phone_result(err)

        token = await self._tokens.get_token(CredentialClass.COLLECTION)
        if isinstance(token, AuthFailure):
            return auth_failure_result(token)

        reference = str(uuid.uuid4())
        headers = self._headers(CredentialClass.COLLECTION, token.access_token)
        headers["X-Reference-Id"] = reference
        if self._credentials.payin_callback_url:
            headers["X-Callback-Url"] = self._credentials.payin_callback_url

        logger.info("Submitting MTN request to pay", extra={"phone": mask_phone(msisdn), "reference": reference})
        try:
            response = await self._http.request(
                "POST",
                "/collection/v1_0/requesttopay",
                headers=headers,
                json=self._request_body(intent, msisdn, reference, "payer"),
            )
        except ProviderTransportError as err:
            return transport_failure_result(err)

        payload = read_json(response)
        if response.status_code != 202:
            return PaymentResult.failure(
                status_code=rejected_status_code(response.status_code),
                message=provider_message(payload, "MTN rejected the payment request"),
                error_code=payload.get("code") if isinstance(payload, dict) else None,
                raw_provider_response=payload,
            )

        return PaymentResult.accepted(
            verification_token=reference,
            message="Payment request sent to the customer's phone",
            raw_provider_response={"referenceId": reference},
        )

    async def payout(self, intent: PaymentIntent) -> PaymentResult:
        if self._test_mode is not None:
            simulated = self._test_mode.simulate(intent)
            if simulated is not None:
                return simulated
            intent = self._test_mode.prepare_payout(intent)

        try:
            msisdn = self._classifier.to_msisdn(intent.phone_number)
        except PhoneClassificationError as err:
            return invalid_phone_result(err)

        token = await self._tokens.get_token(CredentialClass.DISBURSEMENT)
        if isinstance(token, AuthFailure):
            return auth_failure_result(token)

        headers = self._headers(CredentialClass.DISBURSEMENT, token.access_token)
        try:
            balance_response = await self._http.request(
                "GET",
                "/disbursement/v1_0/account/balance",
                headers=headers,
            )
        except ProviderTransportError as err:
            return transport_failure_result(err)

        balance_payload = read_json(balance_response)
        balance = None
        if balance_response.status_code == 200:
            try:
                balance = MtnBalance.model_validate(balance_payload)
            except ValidationError:
                balance = None
        if balance is None:
            return PaymentResult.failure(
                status_code=502,
                message="Unable to check MTN disbursement balance",
                raw_provider_response=balance_payload,
            )

        if balance.availableBalance < intent.amount:
            logger.warning(
                "MTN payout blocked by insufficient balance",
                extra={"requested": str(intent.amount), "available": str(balance.availableBalance)},
            )
            return PaymentResult.failure(
                status_code=400,
                message="Insufficient balance",
                error_code="NOT_ENOUGH_FUNDS",
                raw_provider_response={"availableBalance": str(balance.availableBalance)},
            )

        reference = str(uuid.uuid4())
        transfer_headers = {**headers, "X-Reference-Id": reference}
        if self._credentials.payout_callback_url:
            transfer_headers["X-Callback-Url"] = self._credentials.payout_callback_url

        logger.info("Submitting MTN transfer", extra={"phone": mask_phone(msisdn), "reference": reference})
        try:
            response = await self._http.request(
                "POST",
                "/disbursement/v1_0/transfer",
                headers=transfer_headers,
                json=self._request_body(intent, msisdn, reference, "payee"),
            )
        except ProviderTransportError as err:
            return transport_failure_result(err)

        payload = read_json(response)
        if response.status_code != 202:
            return PaymentResult.failure(
                status_code=rejected_status_code(response.status_code),
                message=provider_message(payload, "MTN rejected the transfer request"),
                error_code=payload.get("code") if isinstance(payload, dict) else None,
                raw_provider_response=payload,
            )

        return PaymentResult.accepted(
            verification_token=reference,
            message="Payout initiated successfully",
            raw_provider_response={"referenceId": reference},
        )

    async def _fetch_status(self, credential_class: CredentialClass, path: str) -> StatusCheckResult:
        token = await self._tokens.get_token(credential_class)
        if isinstance(token, AuthFailure):
            return auth_failure_status(token)

        try:
            response = await self._http.request("GET", path, headers=self._headers(credential_class, token.access_token))
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
                message=provider_message(payload, "Unable to verify MTN transaction"),
                raw_provider_response=payload,
            )

        try:
            transaction = MtnTransaction.model_validate(payload)
        except ValidationError:
            return StatusCheckResult.failure(
                status_code=502,
                message="MTN returned an unreadable transaction",
                raw_provider_response=payload,
            )

        # MTN reports the reason as a bare error code.
        reason = _reason_text(transaction.reason)
        return StatusCheckResult(
            status_code=200,
            success=True,
            message="Transaction verified",
            transaction_status=map_status(PaymentProviderName.MTN, transaction.status),
            transaction_amount=transaction.amount,
            raw_provider_response=payload,
            failure_reason=reason,
            failure_code=reason,
        )

    async def check_payment(self, verification_token: str) -> StatusCheckResult:
        return await self._fetch_status(
            CredentialClass.COLLECTION,
            f"/collection/v1_0/requesttopay/{verification_token}",
        )

    async def check_payout_status(self, verification_token: str) -> StatusCheckResult:
        return await self._fetch_status(
            CredentialClass.DISBURSEMENT,
            f"/disbursement/v1_0/transfer/{verification_token}",
        )
