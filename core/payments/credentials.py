from __future__ import annotations

from dataclasses import dataclass

from core.payments.types import CredentialClass


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


@dataclass(frozen=True)
class MtnCredentials:
    base_url: str
    target_environment: str
    collection_user_id: str | None = None
    collection_api_key: str | None = None
    collection_subscription_key: str | None = None
    disbursement_user_id: str | None = None
    disbursement_api_key: str | None = None
    disbursement_subscription_key: str | None = None
    payin_callback_url: str | None = None
    payout_callback_url: str | None = None

    def subscription_key(self, credential_class: CredentialClass) -> str | None:
        if credential_class == CredentialClass.DISBURSEMENT:
            return self.disbursement_subscription_key
        return self.collection_subscription_key

    def missing_fields(self, credential_class: CredentialClass) -> list[str]:
        if credential_class == CredentialClass.DISBURSEMENT:
            required = {
                "disbursement_user_id": self.disbursement_user_id,
                "disbursement_api_key": self.disbursement_api_key,
                "disbursement_subscription_key": self.disbursement_subscription_key,
            }
        else:
            required = {
                "collection_user_id": self.collection_user_id,
                "collection_api_key": self.collection_api_key,
                "collection_subscription_key": self.collection_subscription_key,
            }
        return [name for name, value in required.items() if _blank(value)]


@dataclass(frozen=True)
class OrangeCredentials:
    base_url: str
    token_url: str
    consumer_user: str | None = None
    consumer_secret: str | None = None
    api_username: str | None = None
    api_password: str | None = None
    pin_code: str | None = None
    merchant_number: str | None = None
    callback_url: str | None = None

    def missing_fields(self, credential_class: CredentialClass = CredentialClass.DEFAULT) -> list[str]:
        required = {
            "consumer_user": self.consumer_user,
            "consumer_secret": self.consumer_secret,
        }
        return [name for name, value in required.items() if _blank(value)]

    def missing_merchant_fields(self) -> list[str]:
        required = {
            "api_username": self.api_username,
            "api_password": self.api_password,
            "pin_code": self.pin_code,
            "merchant_number": self.merchant_number,
        }
        return [name for name, value in required.items() if _blank(value)]


@dataclass(frozen=True)
class PawaPayCredentials:
    base_url: str
    api_token: str | None = None
    api_version: str = "v2"
    callback_url: str | None = None
    country: str = "CMR"

    def missing_fields(self, credential_class: CredentialClass = CredentialClass.DEFAULT) -> list[str]:
        return ["api_token"] if _blank(self.api_token) else []
