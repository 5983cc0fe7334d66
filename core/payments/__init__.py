from core.payments.manager import PaymentManager
from core.payments.orchestrator import PaymentOrchestrator
from core.payments.types import (
    CredentialClass,
    Operator,
    PaymentIntent,
    PaymentProviderName,
    PaymentResult,
    StatusCheckResult,
    TransactionStatus,
)

__all__ = [
    "CredentialClass",
    "Operator",
    "PaymentIntent",
    "PaymentManager",
    "PaymentOrchestrator",
    "PaymentProviderName",
    "PaymentResult",
    "StatusCheckResult",
    "TransactionStatus",
]
