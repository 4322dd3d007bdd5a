"""Pydantic schemas for pricing configuration."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Set

from pydantic import BaseModel, Field, field_validator, model_validator


class DurationTier(BaseModel):
    name: str = Field(..., min_length=1)
    max_minutes: int = Field(..., gt=0, description="Longest duration (inclusive) priced at this tier")
    multiplier: Decimal = Field(..., gt=0, description="Multiplier applied to the base rate")


class ExtraService(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    amount: Decimal = Field(..., ge=0, description="Fixed amount added to the price")


class PricingConfig(BaseModel):
    tiers: List[DurationTier]
    surcharge_days: Set[int] = Field(
        default_factory=lambda: {5, 6},
        description="Days of week (0=Monday) carrying the surcharge",
    )
    surcharge_multiplier: Decimal = Field(Decimal("1.2"), ge=1)
    extras: List[ExtraService] = Field(default_factory=list)

    @field_validator("surcharge_days")
    @classmethod
    def validate_days(cls, value: Set[int]) -> Set[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("surcharge_days must be between 0 (Monday) and 6 (Sunday)")
        return value

    @model_validator(mode="after")
    def validate_tiers(self) -> "PricingConfig":
        if not self.tiers:
            raise ValueError("At least one duration tier must be defined")
        ordered = sorted(self.tiers, key=lambda tier: tier.max_minutes)
        for prev, tier in zip(ordered, ordered[1:]):
            if tier.max_minutes == prev.max_minutes:
                raise ValueError("Duration tiers must have distinct max_minutes")
            if tier.multiplier < prev.multiplier:
                raise ValueError("Tier multipliers must not decrease with duration")
        self.tiers = ordered
        ids = [extra.id for extra in self.extras]
        if len(ids) != len(set(ids)):
            raise ValueError("Extra service ids must be unique")
        return self

    @property
    def max_duration_minutes(self) -> int:
        return self.tiers[-1].max_minutes

    @property
    def extras_by_id(self) -> Dict[str, ExtraService]:
        return {extra.id: extra for extra in self.extras}


DEFAULT_PRICING_CONFIG = PricingConfig(
    tiers=[
        DurationTier(name="hour", max_minutes=60, multiplier=Decimal("1")),
        DurationTier(name="two_hours", max_minutes=120, multiplier=Decimal("1.8")),
        DurationTier(name="overnight", max_minutes=720, multiplier=Decimal("4")),
        DurationTier(name="weekend", max_minutes=2880, multiplier=Decimal("12")),
    ],
    surcharge_days={5, 6},
    surcharge_multiplier=Decimal("1.2"),
    extras=[
        ExtraService(id="dinner", name="Dinner date", amount=Decimal("100.00")),
        ExtraService(id="travel", name="Travel companion", amount=Decimal("150.00")),
        ExtraService(id="event", name="Event escort", amount=Decimal("200.00")),
    ],
)
