from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from core.payments.credentials import PawaPayCredentials
from core.payments.failure_reasons import failure_code, parse_failure_reason
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
from core.payments.tokens import PawaPayTokenManager
from core.payments.types import (
    AuthFailure,
    CredentialClass,
    Operator,
    PaymentIntent,
    PaymentProviderName,
    PaymentResult,
    StatusCheckResult,
    TransactionStatus,
    format_amount,
)

logger = logging.getLogger(__name__)

PAWAPAY_PRODUCTION_BASE_URL = "https://api.pawapay.io"
PAWAPAY_SANDBOX_BASE_URL = "https://api.sandbox.pawapay.io"
STATEMENT_DESCRIPTION_MAX_LENGTH = 22


class PawaPayApiVersion(str, Enum):
    V1 = "v1"
    V2 = "v2"


PROVIDER_CODES: dict[PawaPayApiVersion, dict[Operator, str]] = {
    PawaPayApiVersion.V1: {Operator.MTN: "MTN_MOMO_CMR", Operator.ORANGE: "ORANGE_CMR"},
    PawaPayApiVersion.V2: {Operator.MTN: "MTN_CM", Operator.ORANGE: "ORANGE_CM"},
}


class PawaPaySubmission(BaseModel):
    model_config = ConfigDict(extra="allow")

    depositId: str | None = None
    payoutId: str | None = None
    status: str | None = None
    failureReason: Any | None = None


class PawaPayTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    depositId: str | None = None
    payoutId: str | None = None
    status: str | None = None
    amount: Any | None = None
    requestedAmount: str | None = None
    depositedAmount: str | None = None
    currency: str | None = None
    failureReason: Any | None = None


class PawaPayWalletBalance(BaseModel):
    model_config = ConfigDict(extra="allow")

    balance: Decimal
    currency: str | None = None
    country: str | None = None
    provider: str | None = None
    mno: str | None = None


class PawaPayWalletBalances(BaseModel):
    balances: list[PawaPayWalletBalance]


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _transaction_amount(transaction: PawaPayTransaction) -> Decimal | None:
    if isinstance(transaction.amount, dict):
        return _decimal(transaction.amount.get("value"))
    if transaction.amount is not None:
        return _decimal(transaction.amount)
    return _decimal(transaction.depositedAmount or transaction.requestedAmount)


class PawaPayProvider(PaymentProvider):
    """pawaPay aggregator covering both Cameroonian networks behind one account.

    The wire format differs between API versions: v1 nests the amount as
    ``{value, currency}`` and names the network in ``correspondent``; v2
    sends the amount as a string with a sibling ``currency`` and names the
    network in ``accountDetails.provider``.
    """

    provider_name = PaymentProviderName.PAWAPAY.value

    def __init__(
        self,
        *,
        credentials: PawaPayCredentials,
        http: ProviderHttpClient,
        token_manager: PawaPayTokenManager,
        classifier: OperatorClassifier,
        api_version: PawaPayApiVersion = PawaPayApiVersion.V2,
        test_mode: TestModeStrategy | None = None,
    ) -> None:
        self._credentials = credentials
        self._http = http
        self._tokens = token_manager
        self._classifier = classifier
        self.api_version = api_version
        self._test_mode = test_mode

    def _path(self, resource: str) -> str:
        if self.api_version == PawaPayApiVersion.V2:
            return f"/v2/{resource}"
        return f"/{resource}"

    def _provider_code(self, phone_number: str) -> str:
        return PROVIDER_CODES[self.api_version][self._classifier.classify(phone_number)]

    def _build_body(
        self,
        *,
        intent: PaymentIntent,
        msisdn: str,
        provider_code: str,
        id_field: str,
        party: str,
        transaction_id: str,
    ) -> dict[str, Any]:
        amount = format_amount(intent.amount, intent.currency)
        description = sanitize_reason(intent.reason)[:STATEMENT_DESCRIPTION_MAX_LENGTH].strip()
        if self.api_version == PawaPayApiVersion.V2:
            body: dict[str, Any] = {
                id_field: transaction_id,
                party: {
                    "type": "MMO",
                    "accountDetails": {"phoneNumber": msisdn, "provider": provider_code},
                },
                "amount": amount,
                "currency": intent.currency,
                "clientReferenceId": intent.reference or transaction_id,
                "customerMessage": description,
            }
        else:
            body = {
                id_field: transaction_id,
                party: {"type": "MSISDN", "address": {"value": msisdn}},
                "amount": {"value": amount, "currency": intent.currency},
                "correspondent": provider_code,
                "customerTimestamp": datetime.now(timezone.utc).isoformat(),
                "statementDescription": description,
                "externalId": intent.reference or transaction_id,
            }
        if self._credentials.callback_url:
            body["callbackUrl"] = self._credentials.callback_url
        if intent.customer_name:
            body["customerName"] = intent.customer_name
        return body

    async def _access_token(self) -> str | AuthFailure:
        token = await self._tokens.get_token(CredentialClass.DEFAULT)
        if isinstance(token, AuthFailure):
            return token
        return token.access_token

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def _available_balance(self, access_token: str, currency: str, provider_code: str) -> Decimal | None:
        country = self._credentials.country
        if self.api_version == PawaPayApiVersion.V2:
            path, params = "/v2/wallet-balances", {"country": country}
        else:
            path, params = f"/v1/wallet-balances/{country}", None
        response = await self._http.request("GET", path, headers=self._headers(access_token), params=params)
        if response.status_code != 200:
            return None
        try:
            wallets = PawaPayWalletBalances.model_validate(read_json(response)).balances
        except ValidationError:
            return None

        for wallet in wallets:
            if provider_code in {wallet.provider, wallet.mno}:
                return wallet.balance
        for wallet in wallets:
            if wallet.currency and wallet.currency.upper() == currency.upper():
                return wallet.balance
        return wallets[0].balance if wallets else None

    async def _submit(self, intent: PaymentIntent, *, resource: str, id_field: str, party: str) -> PaymentResult:
        try:
            msisdn = self._classifier.to_msisdn(intent.phone_number)
            provider_code = self._provider_code(intent.phone_number)
        except PhoneClassificationError as err:
            return invalid_phone_result(err)

        access_token = await self._access_token()
        if isinstance(access_token, AuthFailure):
            return auth_failure_result(access_token)

        if resource == "payouts":
            try:
                available = await self._available_balance(access_token, intent.currency, provider_code)
            except ProviderTransportError as err:
                return transport_failure_result(err)
            if available is None:
                return PaymentResult.failure(
                    status_code=502,
                    message="Unable to check pawaPay wallet balance",
                )
            if available < intent.amount:
                logger.warning(
                    "pawaPay payout blocked by insufficient balance",
                    extra={"requested": str(intent.amount), "available": str(available)},
                )
                return PaymentResult.failure(
                    status_code=400,
                    message="Insufficient balance",
                    error_code="NOT_ENOUGH_FUNDS",
                    raw_provider_response={"availableBalance": str(available)},
                )

        transaction_id = str(uuid.uuid4())
        body = self._build_body(
            intent=intent,
            msisdn=msisdn,
            provider_code=provider_code,
            id_field=id_field,
            party=party,
            transaction_id=transaction_id,
        )

        logger.info(
            "Submitting pawaPay %s",
            resource,
            extra={
                "phone": mask_phone(msisdn),
                "provider_code": provider_code,
                "transaction_id": transaction_id,
                "api_version": self.api_version.value,
            },
        )
        try:
            response = await self._http.request(
                "POST",
                self._path(resource),
                headers=self._headers(access_token),
                json=body,
            )
        except ProviderTransportError as err:
            return transport_failure_result(err)

        payload = read_json(response)
        if not response.is_success:
            return PaymentResult.failure(
                status_code=rejected_status_code(response.status_code),
                message=provider_message(payload, f"pawaPay API returned status {response.status_code}"),
                raw_provider_response=payload,
            )

        try:
            submission = PawaPaySubmission.model_validate(payload)
        except ValidationError:
            return PaymentResult.failure(
                status_code=502,
                message="pawaPay returned an unreadable response",
                raw_provider_response=payload,
            )

        if (submission.status or "").upper() == "REJECTED":
            return PaymentResult.failure(
                status_code=400,
                message=parse_failure_reason(submission.failureReason),
                error_code=failure_code(submission.failureReason) or "REJECTED",
                raw_provider_response=payload,
            )

        verification_token = getattr(submission, id_field) or transaction_id
        return PaymentResult.accepted(
            verification_token=verification_token,
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
        return await self._submit(intent, resource="deposits", id_field="depositId", party="payer")

    async def payout(self, intent: PaymentIntent) -> PaymentResult:
        if self._test_mode is not None:
            simulated = self._test_mode.simulate(intent)
            if simulated is not None:
                return simulated
            intent = self._test_mode.prepare_payout(intent)
        return await self._submit(intent, resource="payouts", id_field="payoutId", party="recipient")

    async def _fetch_status(self, resource: str, transaction_id: str) -> StatusCheckResult:
        label = "Deposit" if resource == "deposits" else "Payout"
        access_token = await self._access_token()
        if isinstance(access_token, AuthFailure):
            return auth_failure_status(access_token)

        try:
            response = await self._http.request(
                "GET",
                f"{self._path(resource)}/{transaction_id}",
                headers=self._headers(access_token),
            )
        except ProviderTransportError as err:
            return transport_failure_status(err)

        payload = read_json(response)
        not_found = StatusCheckResult.failure(
            status_code=404,
            message=f"{label} not found",
            error_code="RESOURCE_NOT_FOUND",
            raw_provider_response=payload,
            not_found=True,
        )
        if response.status_code == 404:
            return not_found
        if not response.is_success:
            return StatusCheckResult.failure(
                status_code=rejected_status_code(response.status_code),
                message=provider_message(payload, f"pawaPay API returned status {response.status_code}"),
                raw_provider_response=payload,
            )

        # v1 answers with a list, v2 wraps the record in {"status": "FOUND", "data": {...}}.
        record = payload
        if isinstance(payload, list):
            if not payload:
                return not_found
            record = payload[0]
        elif isinstance(payload, dict):
            if str(payload.get("status", "")).upper() == "NOT_FOUND":
                return not_found
            if "data" in payload:
                record = payload["data"]

        try:
            transaction = PawaPayTransaction.model_validate(record)
        except ValidationError:
            return StatusCheckResult.failure(
                status_code=502,
                message="pawaPay returned an unreadable transaction",
                raw_provider_response=payload,
            )

        transaction_status = map_status(PaymentProviderName.PAWAPAY, transaction.status)
        failed = transaction_status == TransactionStatus.FAILED
        return StatusCheckResult(
            status_code=200,
            success=True,
            message="Transaction verified",
            transaction_status=transaction_status,
            transaction_amount=_transaction_amount(transaction),
            raw_provider_response=payload,
            failure_reason=parse_failure_reason(transaction.failureReason) if failed else None,
            failure_code=failure_code(transaction.failureReason) if failed else None,
        )

    async def check_payment(self, verification_token: str) -> StatusCheckResult:
        return await self._fetch_status("deposits", verification_token)

    async def check_payout_status(self, verification_token: str) -> StatusCheckResult:
        return await self._fetch_status("payouts", verification_token)
