from .booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingRequested,
    BookingRescheduled,
)
from .dispatcher import BookingEventDispatcher

__all__ = [
    "BookingCancelled",
    "BookingCompleted",
    "BookingConfirmed",
    "BookingEventDispatcher",
    "BookingRequested",
    "BookingRescheduled",
]
