from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from core.payments.credentials import MtnCredentials
from core.payments.http import ProviderHttpClient
from core.payments.mtn_provider import MtnMomoProvider
from core.payments.phone import OperatorClassifier
from core.payments.test_mode import SandboxTestMode
from core.payments.tokens import MtnTokenManager
from core.payments.types import PaymentIntent, TransactionStatus


class _MomoApi:
    """Scripted MTN MoMo sandbox keyed by request path."""

    def __init__(
        self,
        *,
        token_status: int = 200,
        balance: str = "100000",
        request_to_pay: httpx.Response | None = None,
        transfer: httpx.Response | None = None,
        transaction: httpx.Response | None = None,
    ) -> None:
        self.token_status = token_status
        self.balance = balance
        self.request_to_pay = request_to_pay or httpx.Response(202)
        self.transfer = transfer or httpx.Response(202)
        self.transaction = transaction or httpx.Response(200, json={"status": "SUCCESSFUL", "amount": "1000"})
        self.requests: list[httpx.Request] = []

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/token/"):
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json={"access_token": "momo-token", "expires_in": 3600})
        if path == "/disbursement/v1_0/account/balance":
            return httpx.Response(200, json={"availableBalance": self.balance, "currency": "XAF"})
        if path == "/collection/v1_0/requesttopay":
            return self.request_to_pay
        if path == "/disbursement/v1_0/transfer":
            return self.transfer
        return self.transaction


def _provider(api, *, test_mode: SandboxTestMode | None = None) -> MtnMomoProvider:
    credentials = MtnCredentials(
        base_url="https://momo.test",
        target_environment="sandbox",
        collection_user_id="user-c",
        collection_api_key="key-c",
        collection_subscription_key="sub-c",
        disbursement_user_id="user-d",
        disbursement_api_key="key-d",
        disbursement_subscription_key="sub-d",
        payin_callback_url="https://api.example.com/v1/payments/callbacks/mtn",
        payout_callback_url="https://api.example.com/v1/payments/callbacks/mtn?kind=payout",
    )
    http = ProviderHttpClient(base_url=credentials.base_url, transport=httpx.MockTransport(api))
    return MtnMomoProvider(
        credentials=credentials,
        http=http,
        token_manager=MtnTokenManager(credentials=credentials, http=http),
        classifier=OperatorClassifier(),
        test_mode=test_mode,
    )


def _intent(amount: str = "1000", **overrides) -> PaymentIntent:
    values = {"phone_number": "+237 670 00 00 00", "amount": Decimal(amount), "reason": "Course n°12 à Douala"}
    values.update(overrides)
    return PaymentIntent(**values)


@pytest.mark.asyncio
async def test_payin_submits_request_to_pay_and_returns_reference():
    api = _MomoApi()
    provider = _provider(api)

    result = await provider.payin(_intent("1234.99"))

    assert result.success is True
    assert result.status_code == 202
    assert api.paths == ["/collection/token/", "/collection/v1_0/requesttopay"]
    request = api.requests[1]
    assert request.headers["Authorization"] == "Bearer momo-token"
    assert request.headers["X-Target-Environment"] == "sandbox"
    assert request.headers["Ocp-Apim-Subscription-Key"] == "sub-c"
    assert request.headers["X-Callback-Url"] == "https://api.example.com/v1/payments/callbacks/mtn"
    assert result.verification_token == request.headers["X-Reference-Id"]
    body = json.loads(request.content)
    assert body["amount"] == "1234"
    assert body["currency"] == "XAF"
    assert body["payer"] == {"partyIdType": "MSISDN", "partyId": "237670000000"}
    assert body["payerMessage"] == "Course n a Douala"


@pytest.mark.asyncio
async def test_payin_rejection_keeps_provider_message():
    api = _MomoApi(
        request_to_pay=httpx.Response(400, json={"code": "PAYER_NOT_FOUND", "message": "Payer not found"}),
    )
    provider = _provider(api)

    result = await provider.payin(_intent())

    assert result.success is False
    assert result.status_code == 400
    assert result.message == "Payer not found"
    assert result.error_code == "PAYER_NOT_FOUND"


@pytest.mark.asyncio
async def test_payin_timeout_is_reported_as_gateway_timeout():
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/token/"):
            return httpx.Response(200, json={"access_token": "momo-token"})
        raise httpx.ReadTimeout("timed out", request=request)

    provider = _provider(_handler)

    result = await provider.payin(_intent())

    assert result.success is False
    assert result.status_code == 504
    assert result.error_code == "TIMEOUT"


@pytest.mark.asyncio
async def test_payin_auth_failure_skips_provider_call():
    api = _MomoApi(token_status=401)
    provider = _provider(api)

    result = await provider.payin(_intent())

    assert result.success is False
    assert result.status_code == 502
    assert result.error_code == "AUTHENTICATION_FAILED"
    assert api.paths == ["/collection/token/"]


@pytest.mark.asyncio
async def test_payin_invalid_phone_makes_no_request():
    api = _MomoApi()
    provider = _provider(api)

    result = await provider.payin(_intent(phone_number="12"))

    assert result.status_code == 400
    assert result.error_code == "INVALID_PHONE_NUMBER"
    assert api.requests == []


@pytest.mark.asyncio
async def test_payout_blocked_when_balance_is_too_low():
    api = _MomoApi(balance="3000")
    provider = _provider(api)

    result = await provider.payout(_intent("5000"))

    assert result.success is False
    assert result.status_code == 400
    assert result.message == "Insufficient balance"
    assert result.error_code == "NOT_ENOUGH_FUNDS"
    assert api.paths == ["/disbursement/token/", "/disbursement/v1_0/account/balance"]


@pytest.mark.asyncio
async def test_payout_transfers_when_balance_covers_amount():
    api = _MomoApi(balance="3000")
    provider = _provider(api)

    result = await provider.payout(_intent("2500", reference="order-7"))

    assert result.success is True
    assert result.message == "Payout initiated successfully"
    assert api.paths == [
        "/disbursement/token/",
        "/disbursement/v1_0/account/balance",
        "/disbursement/v1_0/transfer",
    ]
    transfer = api.requests[-1]
    assert transfer.headers["Ocp-Apim-Subscription-Key"] == "sub-d"
    assert transfer.headers["X-Callback-Url"].endswith("?kind=payout")
    body = json.loads(transfer.content)
    assert body["payee"]["partyId"] == "237670000000"
    assert body["externalId"] == "order-7"


@pytest.mark.asyncio
async def test_payout_fails_when_balance_is_unreadable():
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/token/"):
            return httpx.Response(200, json={"access_token": "momo-token"})
        return httpx.Response(500, json={"message": "down"})

    provider = _provider(_handler)

    result = await provider.payout(_intent())

    assert result.success is False
    assert result.status_code == 502
    assert result.message == "Unable to check MTN disbursement balance"


@pytest.mark.asyncio
async def test_sandbox_mode_rewrites_currency_and_payout_amount():
    api = _MomoApi(balance="10")
    provider = _provider(api, test_mode=SandboxTestMode())

    result = await provider.payout(_intent("5000"))

    assert result.success is True
    body = json.loads(api.requests[-1].content)
    assert body["currency"] == "EUR"
    assert body["amount"] == "2.00"


@pytest.mark.asyncio
async def test_sandbox_simulated_number_skips_network():
    api = _MomoApi()
    provider = _provider(api, test_mode=SandboxTestMode(simulated_numbers=frozenset({"237670000000"})))

    result = await provider.payin(_intent())

    assert result.success is True
    assert result.verification_token == "sandbox-237670000000"
    assert api.requests == []


@pytest.mark.asyncio
async def test_check_payment_maps_status():
    api = _MomoApi()
    provider = _provider(api)

    result = await provider.check_payment("ref-1")

    assert result.success is True
    assert result.transaction_status == TransactionStatus.COMPLETED
    assert result.transaction_amount == Decimal("1000")
    assert api.paths[-1] == "/collection/v1_0/requesttopay/ref-1"


@pytest.mark.asyncio
async def test_check_payout_status_reports_failure_reason():
    api = _MomoApi(
        transaction=httpx.Response(200, json={"status": "FAILED", "reason": {"code": "PAYEE_NOT_FOUND"}}),
    )
    provider = _provider(api)

    result = await provider.check_payout_status("ref-2")

    assert result.transaction_status == TransactionStatus.FAILED
    assert result.failure_reason == "PAYEE_NOT_FOUND"
    assert result.failure_code == "PAYEE_NOT_FOUND"
    assert api.paths == ["/disbursement/token/", "/disbursement/v1_0/transfer/ref-2"]


@pytest.mark.asyncio
async def test_check_payment_not_found():
    api = _MomoApi(transaction=httpx.Response(404, json={"code": "RESOURCE_NOT_FOUND"}))
    provider = _provider(api)

    result = await provider.check_payment("missing")

    assert result.success is False
    assert result.not_found is True
    assert result.status_code == 404
