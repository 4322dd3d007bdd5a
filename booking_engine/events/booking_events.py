"""Booking domain events."""
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass
class BookingRequested:
    """Fired after a booking is created in pending state."""

    booking_id: str
    reference: str
    client_id: str
    provider_id: str
    start_time: datetime
    end_time: datetime
    price_amount: Decimal
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingConfirmed:
    """Fired after the provider confirms a booking."""

    booking_id: str
    reference: str
    client_id: str
    provider_id: str
    start_time: datetime
    end_time: datetime
    confirmed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCancelled:
    """Fired after a booking is cancelled."""

    booking_id: str
    reference: str
    client_id: str
    provider_id: str
    cancelled_by: str
    cancelled_at: datetime
    refund_amount: Decimal
    currency: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingRescheduled:
    """Fired after a booking moves to a new start time."""

    booking_id: str
    reference: str
    client_id: str
    provider_id: str
    rescheduled_by: str
    previous_start_time: datetime
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCompleted:
    """Fired after a booking is marked complete."""

    booking_id: str
    reference: str
    client_id: str
    provider_id: str
    completed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
