from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Query, Request

from core.response_envelope import document_response
from schemas.payment_schema import PayinIn, PayoutIn, StatusCheckIn
from services.payment_service import (
    calculate_fee_breakdown,
    check_payment_status,
    check_payout_status,
    initiate_payin,
    initiate_payout,
    process_callback,
)

router = APIRouter(prefix="/payments", tags=["Payments"])
payouts_router = APIRouter(prefix="/payouts", tags=["Payouts"])


@router.post("/payin")
@document_response(
    message="Payment request accepted",
    status_code=202,
    response_codes={400: "Invalid phone number or unsupported operator", 503: "Payments not configured"},
)
async def create_payin(payload: PayinIn):
    """
    Ask the customer's mobile-money wallet to approve a payment.

    The response only confirms the provider accepted the request. Poll
    `/payments/check-status` with the returned `verificationToken` or wait
    for the provider callback to learn the final outcome.
    """
    return await initiate_payin(payload)


@router.post("/check-status")
@document_response(message="Payment status fetched", response_codes={404: "Transaction not found"})
async def fetch_payment_status(payload: StatusCheckIn):
    return await check_payment_status(payload)


@router.post("/callbacks/{provider}")
@document_response(message="Callback processed", response_codes={401: "Invalid signature"})
async def provider_callback(
    provider: str,
    request: Request,
    kind: Literal["payin", "payout"] = Query(default="payin"),
):
    """
    Receive status callbacks from a payment provider.

    Accepted `provider` path values:
    - `mtn`
    - `orange`
    - `pawapay`
    """
    body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    return await process_callback(provider_name=provider, body=body, headers=headers, kind=kind)


@payouts_router.post("")
@document_response(
    message="Payout initiated",
    status_code=202,
    response_codes={400: "Insufficient balance or invalid recipient", 503: "Payments not configured"},
)
async def create_payout(payload: PayoutIn):
    return await initiate_payout(payload)


@payouts_router.post("/check-status")
@document_response(message="Payout status fetched", response_codes={404: "Payout not found"})
async def fetch_payout_status(payload: StatusCheckIn):
    return await check_payout_status(payload)


@payouts_router.get("/fee-breakdown")
@document_response(message="Fee breakdown calculated")
async def fee_breakdown(amount: Decimal = Query(gt=0)):
    return calculate_fee_breakdown(amount)
