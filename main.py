from __future__ import annotations

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from api.v1.payments_route import payouts_router as v1_payouts_router
from api.v1.payments_route import router as v1_payments_router
from core.logging_setup import REQUEST_ID_CTX, setup_logging
from core.payments.manager import PaymentManager
from core.response_envelope import (
    apply_response_documentation,
    document_response,
    error_response,
    http_exception_response,
    request_id_for,
)
from core.settings import get_settings

logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = REQUEST_ID_CTX.set(request_id)
        try:
            response = await call_next(request)
        finally:
            REQUEST_ID_CTX.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO")
    try:
        PaymentManager.configure_from_settings()
    except RuntimeError as err:
        # Payment routes answer 503 until the provider credentials are set.
        logger.error("Payment providers not configured", extra={"error": str(err)})
    yield


def _include_error_details() -> bool:
    try:
        settings = get_settings()
    except RuntimeError:
        return False
    return settings.debug_include_error_details and not settings.is_production


def _cors_origins() -> list[str]:
    origins = os.getenv("CORS_ORIGINS")
    if not origins:
        return ["http://localhost:3000"]
    return [item.strip() for item in origins.split(",") if item.strip()]


app = FastAPI(lifespan=lifespan, title="Mobile Money Payments API")
app.add_middleware(RequestIdMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return http_exception_response(exc=exc, request=request)


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    field_errors = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())[1:]) or "(root)",
            "message": str(error.get("msg", "Invalid value")),
            "errorType": str(error.get("type", "validation_error")),
        }
        for error in exc.errors()
    ]
    return error_response(
        status_code=422,
        message="Validation error",
        data={"code": "VALIDATION_FAILED", "details": {"fieldErrors": field_errors}},
        request_id=request_id_for(request),
    )


@app.exception_handler(Exception)
async def custom_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return error_response(
        status_code=500,
        message="Internal Server Error",
        data={"code": "INTERNAL_ERROR", "details": str(exc) if _include_error_details() else None},
        request_id=request_id_for(request),
    )


@app.get("/health", tags=["Health"])
@document_response(
    message="Health check completed",
    success_example={"status": "healthy", "payments": {"mtn": "mtn", "orange": "orange"}},
)
async def health_check():
    try:
        manager = PaymentManager.get_instance()
    except RuntimeError as err:
        return {
            "status": "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payments": None,
            "message": str(err),
        }
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": manager.payment_environment,
        "payments": manager.routing(),
    }


app.include_router(v1_payments_router, prefix="/v1")
app.include_router(v1_payouts_router, prefix="/v1")

apply_response_documentation(app)
