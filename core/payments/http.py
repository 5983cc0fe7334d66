from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class ProviderTransportError(Exception):
    """Raised when a provider call never produced an HTTP response."""

    def __init__(self, message: str, *, error_code: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code


class ProviderHttpClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any | None = None,
        data: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
    ) -> httpx.Response:
        url = self.url(path)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                return await client.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    data=data,
                    params=params,
                    auth=auth,
                )
        except httpx.TimeoutException as err:
            logger.warning("Provider request timed out", extra={"method": method, "url": url})
            raise ProviderTransportError(
                "Payment provider timed out",
                error_code="TIMEOUT",
                status_code=504,
            ) from err
        except httpx.HTTPError as err:
            logger.warning(
                "Provider request failed",
                extra={"method": method, "url": url, "error": str(err)},
            )
            raise ProviderTransportError(
                "Payment provider is unreachable",
                error_code="NETWORK_ERROR",
                status_code=502,
            ) from err


def read_json(response: httpx.Response) -> Any | None:
    try:
        return response.json()
    except ValueError:
        return None


def provider_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "error_description", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        failure_reason = payload.get("failureReason")
        if isinstance(failure_reason, dict):
            value = failure_reason.get("failureMessage")
            if isinstance(value, str) and value.strip():
                return value.strip()
    return fallback
