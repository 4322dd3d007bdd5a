"""
Booking lifecycle state machine.

    pending ──confirm──▶ confirmed ──complete──▶ completed
       │                     │
       └──cancel──▶ cancelled ◀──cancel──┘

Reschedule is a self-transition on pending and confirmed. Every status write
in the engine goes through ``apply_transition``.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, Tuple

from ..core.exceptions import InvalidStateException
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class BookingTransition(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    RESCHEDULE = "reschedule"


TRANSITIONS: Dict[Tuple[BookingStatus, BookingTransition], BookingStatus] = {
    (BookingStatus.PENDING, BookingTransition.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingTransition.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingTransition.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingTransition.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.PENDING, BookingTransition.RESCHEDULE): BookingStatus.PENDING,
    (BookingStatus.CONFIRMED, BookingTransition.RESCHEDULE): BookingStatus.CONFIRMED,
}

# Timestamp column stamped when a transition lands
_TIMESTAMP_FIELDS = {
    BookingTransition.CONFIRM: "confirmed_at",
    BookingTransition.CANCEL: "cancelled_at",
    BookingTransition.COMPLETE: "completed_at",
    BookingTransition.RESCHEDULE: "rescheduled_at",
}


def allowed_transitions(status: BookingStatus) -> FrozenSet[BookingTransition]:
    return frozenset(t for (s, t) in TRANSITIONS if s == status)


def next_status(status: BookingStatus, transition: BookingTransition) -> BookingStatus:
    """Target status, or InvalidStateException if ``transition`` is illegal from ``status``."""
    target = TRANSITIONS.get((status, transition))
    if target is None:
        prometheus_metrics.record_booking_transition(transition.value, "rejected")
        raise InvalidStateException(
            f"Cannot {transition.value} a booking that is {status.value}",
            details={"status": status.value, "transition": transition.value},
        )
    return target


def apply_transition(
    booking: Booking,
    transition: BookingTransition,
    now: datetime,
    **changes: Any,
) -> Booking:
    """
    Move ``booking`` along ``transition`` and apply ``changes`` to its fields.

    Nothing is written when the transition is illegal.
    """
    previous = booking.status_enum
    target = next_status(previous, transition)
    for name, value in changes.items():
        if not hasattr(booking, name):
            raise AttributeError(f"Booking has no field '{name}'")
        setattr(booking, name, value)
    booking.status = target.value
    setattr(booking, _TIMESTAMP_FIELDS[transition], now)
    prometheus_metrics.record_booking_transition(transition.value, "applied")
    logger.info(
        "booking_transition",
        extra={
            "booking_id": booking.id,
            "transition": transition.value,
            "from_status": previous.value,
            "to_status": target.value,
        },
    )
    return booking
