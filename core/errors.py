from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status

from core.payments.types import PaymentResult, StatusCheckResult


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"
    PAYMENT_PROVIDER_NOT_CONFIGURED = "PAYMENT_PROVIDER_NOT_CONFIGURED"
    PAYMENT_REJECTED = "PAYMENT_REJECTED"
    PAYMENT_WEBHOOK_INVALID = "PAYMENT_WEBHOOK_INVALID"
    INVALID_PHONE_NUMBER = "INVALID_PHONE_NUMBER"
    UNSUPPORTED_OPERATOR = "UNSUPPORTED_OPERATOR"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        super().__init__(status_code=status_code, detail=detail, headers=headers)


_PROVIDER_ERROR_CODES = {
    "INVALID_PHONE_NUMBER": ErrorCode.INVALID_PHONE_NUMBER,
    "UNSUPPORTED_OPERATOR": ErrorCode.UNSUPPORTED_OPERATOR,
    "NOT_ENOUGH_FUNDS": ErrorCode.INSUFFICIENT_BALANCE,
    "INSUFFICIENT_BALANCE": ErrorCode.INSUFFICIENT_BALANCE,
    "RESOURCE_NOT_FOUND": ErrorCode.RESOURCE_NOT_FOUND,
}


def payment_failed(result: PaymentResult | StatusCheckResult) -> AppException:
    if result.error_code in _PROVIDER_ERROR_CODES:
        code = _PROVIDER_ERROR_CODES[result.error_code]
    elif result.status_code < 500:
        code = ErrorCode.PAYMENT_REJECTED
    else:
        code = ErrorCode.PAYMENT_PROVIDER_ERROR
    return AppException(
        status_code=result.status_code if result.status_code >= 400 else status.HTTP_502_BAD_GATEWAY,
        code=code,
        message=result.message,
        details={"providerCode": result.error_code, "providerResponse": result.raw_provider_response},
    )


def payments_not_configured(details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        code=ErrorCode.PAYMENT_PROVIDER_NOT_CONFIGURED,
        message="Payment providers are not configured",
        details=details,
    )


def webhook_invalid(message: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
        message=message,
        details=details,
    )
