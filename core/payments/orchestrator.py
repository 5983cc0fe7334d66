from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping, TypeVar

from core.payments.phone import OperatorClassifier, PhoneClassificationError, UnsupportedOperatorError, mask_phone
from core.payments.provider import PaymentProvider
from core.payments.types import Operator, PaymentIntent, PaymentResult, StatusCheckResult

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", PaymentResult, StatusCheckResult)


class PaymentOrchestrator:
    """Routes each request to the adapter serving the phone number's network.

    Callers must not submit the same intent twice; adapters mint a fresh
    provider reference on every call.
    """

    def __init__(
        self,
        *,
        adapters: Mapping[Operator, PaymentProvider],
        classifier: OperatorClassifier,
    ) -> None:
        self._adapters = dict(adapters)
        self._classifier = classifier

    def adapter_for(self, phone_number: str) -> PaymentProvider:
        operator = self._classifier.classify(phone_number)
        adapter = self._adapters.get(operator)
        if adapter is None:
            raise UnsupportedOperatorError(
                f"No payment provider configured for {operator.value}",
                phone_number=phone_number,
            )
        return adapter

    async def _dispatch(
        self,
        operation: str,
        phone_number: str,
        call: Callable[[PaymentProvider], Awaitable[ResultT]],
        on_error: Callable[..., ResultT],
    ) -> ResultT:
        try:
            adapter = self.adapter_for(phone_number)
        except PhoneClassificationError as err:
            logger.info(
                "Payment routing rejected",
                extra={"operation": operation, "phone": mask_phone(phone_number), "error_code": err.error_code},
            )
            return on_error(status_code=400, message=err.message, error_code=err.error_code)

        try:
            return await call(adapter)
        except Exception:
            logger.exception(
                "Payment adapter failed",
                extra={"operation": operation, "provider": adapter.provider_name},
            )
            return on_error(status_code=500, message="Payment processing failed", error_code="INTERNAL_ERROR")

    async def payin(self, intent: PaymentIntent) -> PaymentResult:
        return await self._dispatch(
            "payin",
            intent.phone_number,
            lambda adapter: adapter.payin(intent),
            PaymentResult.failure,
        )

    async def payout(self, intent: PaymentIntent) -> PaymentResult:
        return await self._dispatch(
            "payout",
            intent.phone_number,
            lambda adapter: adapter.payout(intent),
            PaymentResult.failure,
        )

    async def check_payment(self, verification_token: str, phone_number: str) -> StatusCheckResult:
        return await self._dispatch(
            "check_payment",
            phone_number,
            lambda adapter: adapter.check_payment(verification_token),
            StatusCheckResult.failure,
        )

    async def check_payout_status(self, verification_token: str, phone_number: str) -> StatusCheckResult:
        return await self._dispatch(
            "check_payout_status",
            phone_number,
            lambda adapter: adapter.check_payout_status(verification_token),
            StatusCheckResult.failure,
        )
