from __future__ import annotations

import logging
from threading import Lock

import httpx

from core.payments.credentials import MtnCredentials, OrangeCredentials, PawaPayCredentials
from core.payments.fees import FeeCalculator
from core.payments.http import ProviderHttpClient
from core.payments.mtn_provider import MtnMomoProvider
from core.payments.orange_provider import OrangeMoneyProvider
from core.payments.orchestrator import PaymentOrchestrator
from core.payments.pawapay_provider import PawaPayApiVersion, PawaPayProvider
from core.payments.phone import OperatorClassifier
from core.payments.provider import PaymentProvider
from core.payments.test_mode import SandboxTestMode
from core.payments.tokens import MtnTokenManager, OrangeTokenManager, PawaPayTokenManager
from core.payments.types import Operator, PaymentProviderName
from core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class PaymentManager:
    _instance: "PaymentManager | None" = None
    _lock = Lock()

    def __init__(
        self,
        *,
        orchestrator: PaymentOrchestrator,
        adapters: dict[Operator, PaymentProvider],
        fee_calculator: FeeCalculator,
        webhook_secrets: dict[PaymentProviderName, str | None],
        payment_environment: str,
    ) -> None:
        self.orchestrator = orchestrator
        self.adapters = adapters
        self.fee_calculator = fee_calculator
        self._webhook_secrets = webhook_secrets
        self.payment_environment = payment_environment

    @staticmethod
    def _build_pawapay(
        settings: Settings,
        classifier: OperatorClassifier,
        transport: httpx.AsyncBaseTransport | None,
        test_mode: SandboxTestMode | None,
    ) -> PawaPayProvider:
        credentials = PawaPayCredentials(
            base_url=settings.pawapay_base_url,
            api_token=settings.pawapay_api_token,
            api_version=settings.pawapay_api_version,
            callback_url=settings.pawapay_callback_url or settings.callback_url(PaymentProviderName.PAWAPAY.value),
        )
        return PawaPayProvider(
            credentials=credentials,
            http=ProviderHttpClient(
                base_url=credentials.base_url,
                timeout_seconds=settings.http_timeout_seconds,
                transport=transport,
            ),
            token_manager=PawaPayTokenManager(credentials=credentials),
            classifier=classifier,
            api_version=PawaPayApiVersion(credentials.api_version),
            test_mode=test_mode,
        )

    @staticmethod
    def _build_direct(
        settings: Settings,
        classifier: OperatorClassifier,
        transport: httpx.AsyncBaseTransport | None,
        sandbox_numbers: frozenset[str],
    ) -> dict[Operator, PaymentProvider]:
        mtn_credentials = MtnCredentials(
            base_url=settings.mtn_base_url,
            target_environment=settings.mtn_target_environment,
            collection_user_id=settings.mtn_collection_user_id,
            collection_api_key=settings.mtn_collection_api_key,
            collection_subscription_key=settings.mtn_collection_subscription_key,
            disbursement_user_id=settings.mtn_disbursement_user_id,
            disbursement_api_key=settings.mtn_disbursement_api_key,
            disbursement_subscription_key=settings.mtn_disbursement_subscription_key,
            payin_callback_url=settings.mtn_payin_callback_url or settings.callback_url(PaymentProviderName.MTN.value),
            payout_callback_url=(
                settings.mtn_payout_callback_url
                or settings.callback_url(PaymentProviderName.MTN.value, kind="payout")
            ),
        )
        mtn_http = ProviderHttpClient(
            base_url=mtn_credentials.base_url,
            timeout_seconds=settings.http_timeout_seconds,
            transport=transport,
        )

        orange_credentials = OrangeCredentials(
            base_url=settings.orange_base_url,
            token_url=settings.orange_token_url,
            consumer_user=settings.orange_consumer_user,
            consumer_secret=settings.orange_consumer_secret,
            api_username=settings.orange_api_username,
            api_password=settings.orange_api_password,
            pin_code=settings.orange_pin_code,
            merchant_number=settings.orange_merchant_number,
            callback_url=settings.orange_callback_url or settings.callback_url(PaymentProviderName.ORANGE.value),
        )
        orange_http = ProviderHttpClient(
            base_url=orange_credentials.base_url,
            timeout_seconds=settings.http_timeout_seconds,
            transport=transport,
        )

        sandbox = not settings.is_payment_production
        return {
            Operator.MTN: MtnMomoProvider(
                credentials=mtn_credentials,
                http=mtn_http,
                token_manager=MtnTokenManager(credentials=mtn_credentials, http=mtn_http),
                classifier=classifier,
                test_mode=SandboxTestMode(simulated_numbers=sandbox_numbers) if sandbox else None,
            ),
            # The Orange sandbox settles in XAF at the requested amount.
            Operator.ORANGE: OrangeMoneyProvider(
                credentials=orange_credentials,
                http=orange_http,
                token_manager=OrangeTokenManager(credentials=orange_credentials, http=orange_http),
                classifier=classifier,
                test_mode=(
                    SandboxTestMode(currency=None, payout_amount=None, simulated_numbers=sandbox_numbers)
                    if sandbox
                    else None
                ),
            ),
        }

    @classmethod
    def configure_from_settings(
        cls,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PaymentManager":
        settings = settings or get_settings()
        classifier = OperatorClassifier()
        sandbox_numbers = frozenset(settings.sandbox_test_numbers)

        if settings.use_pawapay:
            test_mode = None
            if not settings.is_payment_production:
                test_mode = SandboxTestMode(simulated_numbers=sandbox_numbers)
            aggregator = cls._build_pawapay(settings, classifier, transport, test_mode)
            adapters: dict[Operator, PaymentProvider] = {
                Operator.MTN: aggregator,
                Operator.ORANGE: aggregator,
            }
        else:
            adapters = cls._build_direct(settings, classifier, transport, sandbox_numbers)

        return cls.configure(
            adapters=adapters,
            classifier=classifier,
            fee_calculator=FeeCalculator(
                transaction_fee_rate_percent=settings.transaction_fee_rate,
                transaction_fee_fixed=settings.transaction_fee_fixed,
                commission_rate_percent=settings.commission_rate,
            ),
            webhook_secrets={
                PaymentProviderName.MTN: settings.mtn_webhook_secret,
                PaymentProviderName.ORANGE: settings.orange_webhook_secret,
                PaymentProviderName.PAWAPAY: settings.pawapay_webhook_secret,
            },
            payment_environment=settings.payment_environment,
        )

    @classmethod
    def configure(
        cls,
        *,
        adapters: dict[Operator, PaymentProvider],
        classifier: OperatorClassifier | None = None,
        fee_calculator: FeeCalculator | None = None,
        webhook_secrets: dict[PaymentProviderName, str | None] | None = None,
        payment_environment: str = "sandbox",
    ) -> "PaymentManager":
        """Install a manager built from ready-made adapters as the shared instance."""
        classifier = classifier or OperatorClassifier()
        manager = cls(
            orchestrator=PaymentOrchestrator(adapters=adapters, classifier=classifier),
            adapters=adapters,
            fee_calculator=fee_calculator or FeeCalculator(),
            webhook_secrets=webhook_secrets or {},
            payment_environment=payment_environment,
        )
        logger.info("Payment providers configured", extra={"routing": manager.routing()})

        with cls._lock:
            cls._instance = manager
            return cls._instance

    @classmethod
    def get_instance(cls) -> "PaymentManager":
        if cls._instance is None:
            return cls.configure_from_settings()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    def routing(self) -> dict[str, str]:
        return {operator.value: adapter.provider_name for operator, adapter in self.adapters.items()}

    def webhook_secret(self, provider: PaymentProviderName | str) -> str | None:
        if isinstance(provider, PaymentProviderName):
            return self._webhook_secrets.get(provider)
        try:
            key = PaymentProviderName(str(provider).lower())
        except ValueError as err:
            raise ValueError(f"Unsupported payment provider '{provider}'") from err
        return self._webhook_secrets.get(key)
