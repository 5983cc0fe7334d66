from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel, ValidationError

from core.payments.credentials import MtnCredentials, OrangeCredentials, PawaPayCredentials
from core.payments.http import ProviderHttpClient, ProviderTransportError, read_json
from core.payments.types import AuthFailure, CachedToken, CredentialClass, PaymentProviderName

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OAuthTokenResponse(BaseModel):
    access_token: str
    token_type: str | None = None
    expires_in: int | None = None


class TokenCache:
    """In-process token store, one slot per credential class."""

    def __init__(self) -> None:
        self._tokens: dict[CredentialClass, CachedToken] = {}

    def get(self, credential_class: CredentialClass) -> CachedToken | None:
        return self._tokens.get(credential_class)

    def set(self, credential_class: CredentialClass, token: CachedToken) -> None:
        self._tokens[credential_class] = token

    def clear(self) -> None:
        self._tokens.clear()


class ProviderTokenManager:
    provider: PaymentProviderName
    credential_classes: frozenset[CredentialClass] = frozenset({CredentialClass.DEFAULT})
    token_lifetime: timedelta = DEFAULT_TOKEN_LIFETIME

    def __init__(self, *, cache: TokenCache | None = None, clock: Clock | None = None) -> None:
        self.cache = cache or TokenCache()
        self._clock = clock or utc_now
        self._locks: dict[CredentialClass, asyncio.Lock] = {}

    async def get_token(
        self,
        credential_class: CredentialClass = CredentialClass.DEFAULT,
    ) -> CachedToken | AuthFailure:
        if credential_class not in self.credential_classes:
            return self._failure(credential_class, f"Unsupported credential class '{credential_class.value}'")

        cached = self.cache.get(credential_class)
        if cached is not None and cached.is_valid(self._clock()):
            return cached

        lock = self._locks.setdefault(credential_class, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited.
            cached = self.cache.get(credential_class)
            if cached is not None and cached.is_valid(self._clock()):
                return cached

            result = await self._authenticate(credential_class)
            if isinstance(result, CachedToken):
                self.cache.set(credential_class, result)
                logger.info(
                    "Provider token refreshed",
                    extra={"provider": self.provider.value, "credential_class": credential_class.value},
                )
            else:
                logger.warning(
                    "Provider authentication failed",
                    extra={
                        "provider": self.provider.value,
                        "credential_class": credential_class.value,
                        "reason": result.reason,
                    },
                )
            return result

    async def _authenticate(self, credential_class: CredentialClass) -> CachedToken | AuthFailure:
        raise NotImplementedError

    def _issue(self, access_token: str) -> CachedToken:
        return CachedToken(access_token=access_token, expires_at=self._clock() + self.token_lifetime)

    def _failure(self, credential_class: CredentialClass, reason: str, **details) -> AuthFailure:
        return AuthFailure(
            provider=self.provider,
            credential_class=credential_class,
            reason=reason,
            details=details,
        )

    async def _exchange(
        self,
        http: ProviderHttpClient,
        credential_class: CredentialClass,
        path: str,
        **request_kwargs,
    ) -> CachedToken | AuthFailure:
        try:
            response = await http.request("POST", path, **request_kwargs)
        except ProviderTransportError as err:
            return self._failure(credential_class, err.message, error_code=err.error_code)

        if not response.is_success:
            return self._failure(
                credential_class,
                "Token request rejected",
                status_code=response.status_code,
            )

        try:
            token = OAuthTokenResponse.model_validate(read_json(response))
        except ValidationError:
            return self._failure(credential_class, "Token response is malformed")
        return self._issue(token.access_token)


class MtnTokenManager(ProviderTokenManager):
    """MTN MoMo issues separate tokens for the collection and disbursement products."""

    provider = PaymentProviderName.MTN
    credential_classes = frozenset({CredentialClass.COLLECTION, CredentialClass.DISBURSEMENT})

    def __init__(
        self,
        *,
        credentials: MtnCredentials,
        http: ProviderHttpClient,
        cache: TokenCache | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(cache=cache, clock=clock)
        self._credentials = credentials
        self._http = http

    async def _authenticate(self, credential_class: CredentialClass) -> CachedToken | AuthFailure:
        missing = self._credentials.missing_fields(credential_class)
        if missing:
            return self._failure(credential_class, "Missing MTN credentials", missing=missing)

        if credential_class == CredentialClass.DISBURSEMENT:
            user_id = self._credentials.disbursement_user_id
            api_key = self._credentials.disbursement_api_key
        else:
            user_id = self._credentials.collection_user_id
            api_key = self._credentials.collection_api_key

        return await self._exchange(
            self._http,
            credential_class,
            f"/{credential_class.value}/token/",
            headers={"Ocp-Apim-Subscription-Key": self._credentials.subscription_key(credential_class) or ""},
            auth=(user_id or "", api_key or ""),
        )


class OrangeTokenManager(ProviderTokenManager):
    provider = PaymentProviderName.ORANGE

    def __init__(
        self,
        *,
        credentials: OrangeCredentials,
        http: ProviderHttpClient,
        cache: TokenCache | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(cache=cache, clock=clock)
        self._credentials = credentials
        self._http = http

    async def _authenticate(self, credential_class: CredentialClass) -> CachedToken | AuthFailure:
        missing = self._credentials.missing_fields(credential_class)
        if missing:
            return self._failure(credential_class, "Missing Orange credentials", missing=missing)

        return await self._exchange(
            self._http,
            credential_class,
            self._credentials.token_url,
            data={"grant_type": "client_credentials"},
            auth=(self._credentials.consumer_user or "", self._credentials.consumer_secret or ""),
        )


class PawaPayTokenManager(ProviderTokenManager):
    """pawaPay authenticates with a long-lived API token issued in its dashboard."""

    provider = PaymentProviderName.PAWAPAY

    def __init__(
        self,
        *,
        credentials: PawaPayCredentials,
        cache: TokenCache | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(cache=cache, clock=clock)
        self._credentials = credentials

    async def _authenticate(self, credential_class: CredentialClass) -> CachedToken | AuthFailure:
        if self._credentials.missing_fields(credential_class):
            return self._failure(credential_class, "Missing pawaPay API token", missing=["api_token"])
        return self._issue(self._credentials.api_token or "")
