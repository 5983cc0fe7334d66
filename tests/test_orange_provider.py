from __future__ import annotations

import base64
import json
from decimal import Decimal

import httpx
import pytest

from core.payments.credentials import OrangeCredentials
from core.payments.http import ProviderHttpClient
from core.payments.orange_provider import OrangeMoneyProvider
from core.payments.phone import OperatorClassifier
from core.payments.tokens import OrangeTokenManager
from core.payments.types import PaymentIntent, TransactionStatus


class _OrangeApi:
    def __init__(
        self,
        *,
        init: httpx.Response | None = None,
        pay: httpx.Response | None = None,
        status: httpx.Response | None = None,
    ) -> None:
        self.init = init or httpx.Response(200, json={"message": "Payment request successfully initiated", "data": {"payToken": "MP2601"}})
        self.pay = pay or httpx.Response(200, json={"message": "Merchant payment initiated", "data": {"payToken": "MP2601", "status": "PENDING"}})
        self.status = status or httpx.Response(
            200,
            json={"message": "Transaction retrieved", "data": {"payToken": "MP2601", "status": "SUCCESSFULL", "amount": "1500"}},
        )
        self.requests: list[httpx.Request] = []

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/token":
            return httpx.Response(200, json={"access_token": "om-token", "token_type": "Bearer", "expires_in": 3600})
        if path.endswith("/init"):
            return self.init
        if path.endswith("/pay"):
            return self.pay
        return self.status


def _provider(api, **credential_overrides) -> OrangeMoneyProvider:
    values = {
        "base_url": "https://om.test/omcoreapis/1.0.2",
        "token_url": "https://om.test/token",
        "consumer_user": "consumer",
        "consumer_secret": "secret",
        "api_username": "merchant-user",
        "api_password": "merchant-pass",
        "pin_code": "2222",
        "merchant_number": "691234567",
        "callback_url": "https://api.example.com/v1/payments/callbacks/orange",
    }
    values.update(credential_overrides)
    credentials = OrangeCredentials(**values)
    http = ProviderHttpClient(base_url=credentials.base_url, transport=httpx.MockTransport(api))
    return OrangeMoneyProvider(
        credentials=credentials,
        http=http,
        token_manager=OrangeTokenManager(credentials=credentials, http=http),
        classifier=OperatorClassifier(),
    )


def _intent(**overrides) -> PaymentIntent:
    values = {"phone_number": "699000001", "amount": Decimal("1500.75"), "reason": "Trajet Yaoundé"}
    values.update(overrides)
    return PaymentIntent(**values)


@pytest.mark.asyncio
async def test_payin_runs_init_then_pay_and_returns_pay_token():
    api = _OrangeApi()
    provider = _provider(api)

    result = await provider.payin(_intent(reference="order-1"))

    assert result.success is True
    assert result.status_code == 200
    assert result.verification_token == "MP2601"
    assert api.paths == ["/token", "/omcoreapis/1.0.2/mp/init", "/omcoreapis/1.0.2/mp/pay"]

    pay_request = api.requests[-1]
    assert pay_request.headers["Authorization"] == "Bearer om-token"
    assert pay_request.headers["X-AUTH-TOKEN"] == base64.b64encode(b"merchant-user:merchant-pass").decode()
    body = json.loads(pay_request.content)
    assert body == {
        "channelUserMsisdn": "691234567",
        "amount": "1500",
        "subscriberMsisdn": "237699000001",
        "pin": "2222",
        "orderId": "order-1",
        "description": "Trajet Yaounde",
        "payToken": "MP2601",
        "notifUrl": "https://api.example.com/v1/payments/callbacks/orange",
    }


@pytest.mark.asyncio
async def test_payout_uses_cashin_flow_without_callback():
    api = _OrangeApi()
    provider = _provider(api)

    result = await provider.payout(_intent())

    assert result.success is True
    assert api.paths[1:] == ["/omcoreapis/1.0.2/cashin/init", "/omcoreapis/1.0.2/cashin/pay"]
    body = json.loads(api.requests[-1].content)
    assert "notifUrl" not in body
    assert len(body["orderId"]) == 15


@pytest.mark.asyncio
async def test_missing_pay_token_fails_before_pay():
    api = _OrangeApi(init=httpx.Response(200, json={"message": "Init failed", "data": {}}))
    provider = _provider(api)

    result = await provider.payin(_intent())

    assert result.success is False
    assert result.status_code == 502
    assert result.message == "Init failed"
    assert not any(path.endswith("/pay") for path in api.paths)


@pytest.mark.asyncio
async def test_failed_pay_status_is_rejected():
    api = _OrangeApi(
        pay=httpx.Response(200, json={"message": "Solde insuffisant", "data": {"payToken": "MP2601", "status": "FAILED"}}),
    )
    provider = _provider(api)

    result = await provider.payin(_intent())

    assert result.success is False
    assert result.error_code == "FAILED"
    assert result.verification_token == "MP2601"
    assert result.message == "Solde insuffisant"


@pytest.mark.asyncio
async def test_unconfigured_merchant_account_fails_without_network_call():
    api = _OrangeApi()
    provider = _provider(api, pin_code=None)

    result = await provider.payin(_intent())

    assert result.success is False
    assert result.status_code == 500
    assert result.raw_provider_response == {"missing": ["pin_code"]}
    assert api.requests == []


@pytest.mark.asyncio
async def test_check_payment_maps_orange_success_spelling():
    api = _OrangeApi()
    provider = _provider(api)

    result = await provider.check_payment("MP2601")

    assert result.success is True
    assert result.transaction_status == TransactionStatus.COMPLETED
    assert result.transaction_amount == Decimal("1500")
    assert result.failure_reason is None
    assert api.paths[-1] == "/omcoreapis/1.0.2/mp/paymentstatus/MP2601"


@pytest.mark.asyncio
async def test_check_payout_status_returns_failure_message():
    api = _OrangeApi(
        status=httpx.Response(
            200,
            json={"message": "Transaction retrieved", "data": {"status": "FAILED", "confirmtxnmessage": "Wrong PIN"}},
        ),
    )
    provider = _provider(api)

    result = await provider.check_payout_status("CI2601")

    assert result.transaction_status == TransactionStatus.FAILED
    assert result.failure_reason == "Wrong PIN"
    assert result.failure_code == "Wrong PIN"
    assert api.paths[-1] == "/omcoreapis/1.0.2/cashin/paymentstatus/CI2601"


@pytest.mark.asyncio
async def test_check_payment_not_found():
    api = _OrangeApi(status=httpx.Response(404, json={"message": "Not found"}))
    provider = _provider(api)

    result = await provider.check_payment("unknown")

    assert result.not_found is True
    assert result.error_code == "RESOURCE_NOT_FOUND"
