from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class FeeBreakdown:
    original_amount: Decimal
    transaction_fee: Decimal
    commission: Decimal
    driver_earnings: Decimal
    transaction_fee_rate_percent: Decimal
    transaction_fee_fixed: Decimal
    commission_rate_percent: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "originalAmount": str(self.original_amount),
            "transactionFee": str(self.transaction_fee),
            "commission": str(self.commission),
            "driverEarnings": str(self.driver_earnings),
            "transactionFeeRate": str(self.transaction_fee_rate_percent),
            "transactionFeeFixed": str(self.transaction_fee_fixed),
            "commissionRate": str(self.commission_rate_percent),
        }


@dataclass(frozen=True)
class FeeCalculator:
    """Driver payout deductions: percentage fee plus fixed fee, then commission."""

    transaction_fee_rate_percent: Decimal = Decimal("0")
    transaction_fee_fixed: Decimal = Decimal("0")
    commission_rate_percent: Decimal = Decimal("0")

    def calculate(self, amount: Decimal) -> FeeBreakdown:
        transaction_fee = amount * self.transaction_fee_rate_percent / _HUNDRED + self.transaction_fee_fixed
        commission = amount * self.commission_rate_percent / _HUNDRED
        earnings = max(Decimal("0"), amount - transaction_fee - commission)
        return FeeBreakdown(
            original_amount=amount,
            transaction_fee=transaction_fee,
            commission=commission,
            driver_earnings=earnings,
            transaction_fee_rate_percent=self.transaction_fee_rate_percent,
            transaction_fee_fixed=self.transaction_fee_fixed,
            commission_rate_percent=self.commission_rate_percent,
        )
