from __future__ import annotations

from core.payments.types import PaymentProviderName, TransactionStatus

MTN_STATUS_MAP: dict[str, TransactionStatus] = {
    "SUCCESSFUL": TransactionStatus.COMPLETED,
    "SUCCESS": TransactionStatus.COMPLETED,
    "FAILED": TransactionStatus.FAILED,
    "REJECTED": TransactionStatus.FAILED,
    "EXPIRED": TransactionStatus.FAILED,
    "PENDING": TransactionStatus.PROCESSING,
    "ONGOING": TransactionStatus.PROCESSING,
    "DELAYED": TransactionStatus.PROCESSING,
}

# "SUCCESSFULL" is what the Orange payment status endpoint actually returns.
ORANGE_STATUS_MAP: dict[str, TransactionStatus] = {
    "SUCCESSFULL": TransactionStatus.COMPLETED,
    "SUCCESSFUL": TransactionStatus.COMPLETED,
    "SUCCESS": TransactionStatus.COMPLETED,
    "FAILED": TransactionStatus.FAILED,
    "FAIL": TransactionStatus.FAILED,
    "CANCELLED": TransactionStatus.FAILED,
    "EXPIRED": TransactionStatus.FAILED,
    "INITIATED": TransactionStatus.PENDING,
    "PENDING": TransactionStatus.PENDING,
    "PROCESSING": TransactionStatus.PROCESSING,
}

PAWAPAY_STATUS_MAP: dict[str, TransactionStatus] = {
    "COMPLETED": TransactionStatus.COMPLETED,
    "SUCCESSFUL": TransactionStatus.COMPLETED,
    "FAILED": TransactionStatus.FAILED,
    "FAILURE": TransactionStatus.FAILED,
    "REJECTED": TransactionStatus.FAILED,
    "ACCEPTED": TransactionStatus.PROCESSING,
    "SUBMITTED": TransactionStatus.PROCESSING,
    "PROCESSING": TransactionStatus.PROCESSING,
    "ENQUEUED": TransactionStatus.PROCESSING,
    "PENDING": TransactionStatus.PENDING,
    "FOUND": TransactionStatus.PENDING,
}

STATUS_MAPS: dict[PaymentProviderName, dict[str, TransactionStatus]] = {
    PaymentProviderName.MTN: MTN_STATUS_MAP,
    PaymentProviderName.ORANGE: ORANGE_STATUS_MAP,
    PaymentProviderName.PAWAPAY: PAWAPAY_STATUS_MAP,
}


def map_status(provider: PaymentProviderName | str, native_status: str | None) -> TransactionStatus:
    """Translate a provider status into the shared vocabulary.

    Unknown providers and unrecognized or empty statuses fall back to
    ``pending`` so reconciliation keeps polling instead of settling early.
    """
    try:
        table = STATUS_MAPS[PaymentProviderName(provider)]
    except ValueError:
        return TransactionStatus.PENDING
    if native_status is None:
        return TransactionStatus.PENDING
    return table.get(str(native_status).strip().upper(), TransactionStatus.PENDING)
