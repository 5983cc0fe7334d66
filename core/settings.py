from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_PAYMENT_ENVIRONMENTS = {"sandbox", "production"}
SUPPORTED_PAWAPAY_API_VERSIONS = {"v1", "v2"}
SUPPORTED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
TRUE_VALUES = {"1", "true", "yes"}
BOOLEAN_VALUES = TRUE_VALUES | {"0", "false", "no"}

MTN_BASE_URLS = {
    "sandbox": "https://sandbox.momodeveloper.mtn.com",
    "production": "https://api.mtn.cm",
}
MTN_TARGET_ENVIRONMENTS = {"sandbox": "sandbox", "production": "mtncameroon"}
ORANGE_DEFAULT_BASE_URL = "https://api-s1.orange.cm/omcoreapis/1.0.2"
ORANGE_DEFAULT_TOKEN_URL = "https://api-s1.orange.cm/token"
PAWAPAY_BASE_URLS = {
    "sandbox": "https://api.sandbox.pawapay.io",
    "production": "https://api.pawapay.io",
}

DIRECT_MTN_REQUIRED = ("MOMO_SUBSCRIPTION_KEY", "MOMO_API_USER", "MOMO_API_KEY")
DIRECT_ORANGE_REQUIRED = (
    "DIRECT_OM_CONSUMER_USER",
    "DIRECT_OM_CONSUMER_SECRET",
    "DIRECT_OM_API_USERNAME",
    "DIRECT_OM_API_PASSWORD",
    "DIRECT_OM_PIN_CODE",
    "DIRECT_OM_MERCHAND_NUMBER",
)
PAWAPAY_REQUIRED = ("PAWAPAY_API_TOKEN",)


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _flag(name: str, default: str = "false") -> bool:
    return (_env(name) or default).lower() in TRUE_VALUES


def _decimal(name: str, default: str = "0") -> Decimal:
    return Decimal(_env(name) or default)


def _payment_environment() -> str:
    return (_env("PAYMENT_ENVIRONMENT") or "sandbox").lower()


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    if _flag("USE_PAWAPAY"):
        required = PAWAPAY_REQUIRED
    else:
        required = DIRECT_MTN_REQUIRED + DIRECT_ORANGE_REQUIRED
    for var_name in required:
        if _env(var_name) is None:
            missing.append(var_name)

    if _payment_environment() == "production" and _env("PAYMENT_CALLBACK_HOST") is None:
        missing.append("PAYMENT_CALLBACK_HOST")

    return sorted(set(missing))


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    if _payment_environment() not in SUPPORTED_PAYMENT_ENVIRONMENTS:
        invalid_values.append("PAYMENT_ENVIRONMENT must be one of: sandbox, production")

    use_pawapay = _env("USE_PAWAPAY")
    if use_pawapay is not None and use_pawapay.lower() not in BOOLEAN_VALUES:
        invalid_values.append("USE_PAWAPAY must be a boolean (true/false)")

    api_version = (_env("PAWAPAY_API_VERSION") or "v2").lower()
    if api_version not in SUPPORTED_PAWAPAY_API_VERSIONS:
        invalid_values.append("PAWAPAY_API_VERSION must be one of: v1, v2")

    timeout = _env("PAYMENT_HTTP_TIMEOUT_SECONDS")
    if timeout is not None:
        try:
            if float(timeout) <= 0:
                raise ValueError("must be positive")
        except ValueError:
            invalid_values.append("PAYMENT_HTTP_TIMEOUT_SECONDS must be a positive number")

    for var_name in ("TRANSACTION_FEE_RATE", "TRANSACTION_FEE_FIXED", "COMMISSION_RATE"):
        value = _env(var_name)
        if value is None:
            continue
        try:
            if Decimal(value) < 0:
                raise ValueError("must not be negative")
        except (InvalidOperation, ValueError):
            invalid_values.append(f"{var_name} must be a non-negative number")

    log_level = (_env("LOG_LEVEL") or "INFO").upper()
    if log_level not in SUPPORTED_LOG_LEVELS:
        invalid_values.append("LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Payment configuration is incomplete."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    debug_include_error_details: bool
    payment_environment: str
    use_pawapay: bool
    http_timeout_seconds: float
    callback_host: str
    mtn_base_url: str
    mtn_target_environment: str
    mtn_collection_user_id: str | None
    mtn_collection_api_key: str | None
    mtn_collection_subscription_key: str | None
    mtn_disbursement_user_id: str | None
    mtn_disbursement_api_key: str | None
    mtn_disbursement_subscription_key: str | None
    mtn_webhook_secret: str | None
    orange_base_url: str
    orange_token_url: str
    orange_consumer_user: str | None
    orange_consumer_secret: str | None
    orange_api_username: str | None
    orange_api_password: str | None
    orange_pin_code: str | None
    orange_merchant_number: str | None
    orange_webhook_secret: str | None
    pawapay_base_url: str
    pawapay_api_token: str | None
    pawapay_api_version: str
    pawapay_webhook_secret: str | None
    sandbox_test_numbers: tuple[str, ...]
    transaction_fee_rate: Decimal
    transaction_fee_fixed: Decimal
    commission_rate: Decimal
    mtn_payin_callback_url: str | None = None
    mtn_payout_callback_url: str | None = None
    orange_callback_url: str | None = None
    pawapay_callback_url: str | None = None

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def is_payment_production(self) -> bool:
        return self.payment_environment == "production"

    def callback_url(self, provider: str, kind: str = "payin") -> str:
        url = f"{self.callback_host.rstrip('/')}/v1/payments/callbacks/{provider}"
        if kind != "payin":
            url = f"{url}?kind={kind}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    payment_environment = _payment_environment()
    collection_subscription_key = _env("MOMO_SUBSCRIPTION_KEY")

    return Settings(
        env=os.getenv("ENV", "development"),
        debug_include_error_details=_flag("DEBUG_INCLUDE_ERROR_DETAILS"),
        payment_environment=payment_environment,
        use_pawapay=_flag("USE_PAWAPAY"),
        http_timeout_seconds=float(_env("PAYMENT_HTTP_TIMEOUT_SECONDS") or "30"),
        callback_host=_env("PAYMENT_CALLBACK_HOST") or "http://localhost:8000",
        mtn_base_url=_env("MOMO_BASE_URL") or MTN_BASE_URLS[payment_environment],
        mtn_target_environment=_env("MOMO_TARGET_ENVIRONMENT") or MTN_TARGET_ENVIRONMENTS[payment_environment],
        mtn_collection_user_id=_env("MOMO_API_USER"),
        mtn_collection_api_key=_env("MOMO_API_KEY"),
        mtn_collection_subscription_key=collection_subscription_key,
        mtn_disbursement_user_id=_env("MOMO_DISBURSEMENT_API_USER"),
        mtn_disbursement_api_key=_env("MOMO_DISBURSEMENT_API_KEY"),
        mtn_disbursement_subscription_key=_env("MOMO_DISBURSEMENT_SUBSCRIPTION_KEY") or collection_subscription_key,
        mtn_webhook_secret=_env("MOMO_WEBHOOK_SECRET") or collection_subscription_key,
        orange_base_url=_env("DIRECT_OM_BASE_URL") or ORANGE_DEFAULT_BASE_URL,
        orange_token_url=_env("DIRECT_OM_TOKEN_URL") or ORANGE_DEFAULT_TOKEN_URL,
        orange_consumer_user=_env("DIRECT_OM_CONSUMER_USER"),
        orange_consumer_secret=_env("DIRECT_OM_CONSUMER_SECRET"),
        orange_api_username=_env("DIRECT_OM_API_USERNAME"),
        orange_api_password=_env("DIRECT_OM_API_PASSWORD"),
        orange_pin_code=_env("DIRECT_OM_PIN_CODE"),
        orange_merchant_number=_env("DIRECT_OM_MERCHAND_NUMBER"),
        orange_webhook_secret=_env("DIRECT_OM_WEBHOOK_SECRET"),
        pawapay_base_url=_env("PAWAPAY_BASE_URL") or PAWAPAY_BASE_URLS[payment_environment],
        pawapay_api_token=_env("PAWAPAY_API_TOKEN"),
        pawapay_api_version=(_env("PAWAPAY_API_VERSION") or "v2").lower(),
        pawapay_webhook_secret=_env("PAWAPAY_WEBHOOK_SECRET"),
        sandbox_test_numbers=_split_csv(os.getenv("SANDBOX_TEST_NUMBERS")),
        transaction_fee_rate=_decimal("TRANSACTION_FEE_RATE"),
        transaction_fee_fixed=_decimal("TRANSACTION_FEE_FIXED"),
        commission_rate=_decimal("COMMISSION_RATE"),
        mtn_payin_callback_url=_env("MOMO_PAYIN_CALLBACK_URL"),
        mtn_payout_callback_url=_env("MOMO_PAYOUT_CALLBACK_URL"),
        orange_callback_url=_env("DIRECT_OM_CALLBACK_URL"),
        pawapay_callback_url=_env("PAWAPAY_CALLBACK_URL"),
    )
