# booking_engine/models/availability.py
"""
Provider availability models.

Availability is layered, most specific first:
1. VacationPeriod - inclusive date ranges with no availability at all
2. AvailabilityOverride - one calendar date with its own ranges (or closed)
3. WeeklyScheduleDay - the recurring template, one row per day of week

Time ranges are stored as JSON lists of ``["HH:MM", "HH:MM"]`` pairs in the
provider's local timezone (``ProviderCalendar.timezone``).
"""

from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ProviderCalendar(Base):
    """Per-provider calendar settings."""

    __tablename__ = "provider_calendars"

    provider_id = Column(String(64), primary_key=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<ProviderCalendar {self.provider_id} tz={self.timezone}>"


class WeeklyScheduleDay(Base):
    """One day of a provider's recurring weekly template (0=Monday)."""

    __tablename__ = "weekly_schedule_days"

    provider_id = Column(String(64), primary_key=True)
    day_of_week = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False)
    ranges = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="check_day_of_week"),
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklyScheduleDay {self.provider_id} day={self.day_of_week} "
            f"enabled={self.enabled} ranges={self.ranges}>"
        )


class AvailabilityOverride(Base):
    """Replaces the weekly template for a single calendar date."""

    __tablename__ = "availability_overrides"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False)
    override_date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    ranges = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("provider_id", "override_date", name="uq_override_provider_date"),
        Index("idx_override_provider_date", "provider_id", "override_date"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.override_date.isoformat(),
            "available": bool(self.is_available),
            "ranges": [list(r) for r in self.ranges or []],
        }


class VacationPeriod(Base):
    """Inclusive range of dates on which the provider is unavailable."""

    __tablename__ = "vacation_periods"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="check_vacation_order"),
        Index("idx_vacation_provider_dates", "provider_id", "start_date", "end_date"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "reason": self.reason,
        }
