# booking_engine/models/booking.py
"""
Booking model.

A booking reserves one provider for the half-open interval
[start_time, end_time). ``end_time`` is derived from the duration and stored
so overlap scans can use the (provider_id, start_time) index.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that occupy the provider's calendar
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


class Booking(Base):
    """A reservation of one provider by one client."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    reference = Column(String(20), nullable=False, unique=True)

    provider_id = Column(String(64), nullable=False)
    client_id = Column(String(64), nullable=False)
    service_id = Column(String(64), nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    price_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    extras = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(64), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    refund_fraction = Column(Numeric(3, 2), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    rescheduled = Column(Boolean, nullable=False, default=False)
    rescheduled_at = Column(DateTime(timezone=True), nullable=True)
    rescheduled_by_id = Column(String(64), nullable=True)
    reschedule_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price_amount >= 0", name="check_price_non_negative"),
        CheckConstraint("end_time > start_time", name="check_time_order"),
        Index("ix_bookings_provider_start", "provider_id", "start_time"),
        Index("ix_bookings_client_start", "client_id", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} ({self.reference}): provider={self.provider_id}, "
            f"client={self.client_id}, start={self.start_time}, "
            f"duration={self.duration_minutes}m, status={self.status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def start_utc(self) -> datetime:
        return ensure_utc(self.start_time)

    @property
    def end_utc(self) -> datetime:
        return ensure_utc(self.end_time)

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.client_id, self.provider_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "reference": self.reference,
            "provider_id": self.provider_id,
            "client_id": self.client_id,
            "service_id": self.service_id,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "price_amount": str(Decimal(self.price_amount)) if self.price_amount is not None else None,
            "currency": self.currency,
            "extras": list(self.extras or []),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "confirmed_at": _iso(self.confirmed_at),
            "completed_at": _iso(self.completed_at),
            "cancelled_at": _iso(self.cancelled_at),
            "cancelled_by_id": self.cancelled_by_id,
            "cancellation_reason": self.cancellation_reason,
            "refund_fraction": str(self.refund_fraction) if self.refund_fraction is not None else None,
            "refund_amount": str(self.refund_amount) if self.refund_amount is not None else None,
            "rescheduled": bool(self.rescheduled),
            "rescheduled_at": _iso(self.rescheduled_at),
            "rescheduled_by_id": self.rescheduled_by_id,
            "reschedule_reason": self.reschedule_reason,
        }
