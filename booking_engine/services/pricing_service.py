"""
Booking price calculation.

Pricing is a pure function of its inputs and the PricingConfig the service
was built with:

    amount = round_half_up(base_rate * tier_multiplier * surcharge + sum(extras), 0.01)

where the tier is the smallest one whose ``max_minutes`` covers the
duration, and the surcharge applies when the provider-local start falls on a
surcharge day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence

from ..schemas.pricing import DEFAULT_PRICING_CONFIG, DurationTier, PricingConfig

CENT = Decimal("0.01")
ONE = Decimal("1")


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceQuote:
    amount: Decimal
    currency: str
    tier: str
    tier_multiplier: Decimal
    surcharge_multiplier: Decimal
    base_rate: Decimal
    extras_total: Decimal
    extras: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, object]:
        return {
            "amount": str(self.amount),
            "currency": self.currency,
            "tier": self.tier,
            "tier_multiplier": str(self.tier_multiplier),
            "surcharge_multiplier": str(self.surcharge_multiplier),
            "base_rate": str(self.base_rate),
            "extras_total": str(self.extras_total),
            "extras": list(self.extras),
        }


class PricingService:
    """Computes quotes; holds no state beyond its configuration."""

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config or DEFAULT_PRICING_CONFIG

    @property
    def max_duration_minutes(self) -> int:
        return self.config.max_duration_minutes

    def tier_for(self, duration_minutes: int) -> Optional[DurationTier]:
        for tier in self.config.tiers:
            if duration_minutes <= tier.max_minutes:
                return tier
        return None

    def unknown_extras(self, extras: Sequence[str]) -> List[str]:
        catalogue = self.config.extras_by_id
        return [extra for extra in extras if extra not in catalogue]

    def surcharge_for(self, at: datetime) -> Decimal:
        """Multiplier for the weekday of ``at`` (expected in provider-local time)."""
        if at.weekday() in self.config.surcharge_days:
            return self.config.surcharge_multiplier
        return ONE

    def price(
        self,
        provider_id: str,
        duration_minutes: int,
        service_base_rate: Decimal,
        extras: Sequence[str],
        at: datetime,
        currency: str,
    ) -> PriceQuote:
        """
        Quote a booking.

        Callers validate ``duration_minutes`` against ``max_duration_minutes``
        and ``extras`` against the catalogue first.
        """
        tier = self.tier_for(duration_minutes)
        if tier is None:
            raise ValueError(
                f"Duration {duration_minutes} exceeds the longest tier for provider {provider_id}"
            )
        surcharge = self.surcharge_for(at)
        catalogue = self.config.extras_by_id
        extras_total = sum((catalogue[extra].amount for extra in extras), Decimal("0"))
        base_rate = Decimal(service_base_rate)
        amount = _round_money(base_rate * tier.multiplier * surcharge + extras_total)
        return PriceQuote(
            amount=amount,
            currency=currency,
            tier=tier.name,
            tier_multiplier=tier.multiplier,
            surcharge_multiplier=surcharge,
            base_rate=base_rate,
            extras_total=_round_money(extras_total),
            extras=list(extras),
        )
