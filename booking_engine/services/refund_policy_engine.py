"""Cancellation refund policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Tuple

from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking

CENT = Decimal("0.01")

# (minimum notice, refunded fraction), checked in order; lower bounds inclusive
REFUND_TIERS: Tuple[Tuple[timedelta, Decimal], ...] = (
    (timedelta(hours=48), Decimal("0.90")),
    (timedelta(hours=24), Decimal("0.50")),
)
NO_REFUND = Decimal("0.00")


def refund_fraction(time_until_start: timedelta) -> Decimal:
    """Fraction of the price refunded when cancelling ``time_until_start`` ahead."""
    for minimum_notice, fraction in REFUND_TIERS:
        if time_until_start >= minimum_notice:
            return fraction
    return NO_REFUND


def refund_amount(price: Decimal, time_until_start: timedelta) -> Decimal:
    return (Decimal(price) * refund_fraction(time_until_start)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RefundPolicyResult:
    fraction: Decimal
    amount: Decimal
    currency: str
    notice: timedelta
    policy_basis: str = ""

    @property
    def eligible(self) -> bool:
        return self.amount > 0

    def to_payload(self) -> dict[str, object]:
        return {
            "eligible": self.eligible,
            "fraction": str(self.fraction),
            "amount": str(self.amount),
            "currency": self.currency,
            "notice_seconds": int(self.notice.total_seconds()),
            "policy_basis": self.policy_basis,
        }


class RefundPolicyEngine:
    """Maps cancellation notice to a refund for one booking."""

    def evaluate(self, booking: Booking, now: datetime) -> RefundPolicyResult:
        notice = booking.start_utc - ensure_utc(now)
        fraction = refund_fraction(notice)
        amount = refund_amount(booking.price_amount, notice)
        if fraction == REFUND_TIERS[0][1]:
            basis = "Cancelled at least 48 hours before start"
        elif fraction > NO_REFUND:
            basis = "Cancelled between 24 and 48 hours before start"
        else:
            basis = "Cancelled less than 24 hours before start"
        return RefundPolicyResult(
            fraction=fraction,
            amount=amount,
            currency=booking.currency,
            notice=notice,
            policy_basis=basis,
        )
