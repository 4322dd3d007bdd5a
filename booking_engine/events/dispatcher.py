"""
Post-commit fan-out of booking events to outbound collaborators.

A collaborator failure never undoes a committed transition: it is logged,
counted, and the remaining collaborators still run.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Union

from ..monitoring.prometheus_metrics import prometheus_metrics
from ..services.collaborators import (
    CalendarSink,
    NotificationSink,
    NullCalendarSink,
    NullNotificationSink,
    NullPaymentGateway,
    PaymentGateway,
)
from .booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingRequested,
    BookingRescheduled,
)

logger = logging.getLogger(__name__)

BookingEvent = Union[
    BookingRequested, BookingConfirmed, BookingCancelled, BookingRescheduled, BookingCompleted
]


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


def _payload(event: Event) -> Dict[str, Any]:
    payload = event.to_dict()
    for key, value in payload.items():
        if isinstance(value, datetime):
            payload[key] = value.isoformat()
        elif isinstance(value, Decimal):
            payload[key] = str(value)
    return payload


class BookingEventDispatcher:
    """Routes each booking event to notification, payment and calendar sinks."""

    def __init__(
        self,
        notifications: Optional[NotificationSink] = None,
        payments: Optional[PaymentGateway] = None,
        calendar: Optional[CalendarSink] = None,
    ):
        self.notifications = notifications or NullNotificationSink()
        self.payments = payments or NullPaymentGateway()
        self.calendar = calendar or NullCalendarSink()

    def _call(self, collaborator: str, event: Event, action: Callable[[], None]) -> bool:
        try:
            action()
        except Exception as exc:
            prometheus_metrics.record_collaborator_dispatch(collaborator, "error")
            logger.error(
                "collaborator_dispatch_failed",
                extra={
                    "collaborator": collaborator,
                    "event_type": type(event).__name__,
                    "booking_id": getattr(event, "booking_id", None),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return False
        prometheus_metrics.record_collaborator_dispatch(collaborator, "success")
        return True

    def _notify(self, user_id: str, name: str, event: Event) -> None:
        payload = _payload(event)
        self._call(
            "notification", event, lambda: self.notifications.notify(user_id, name, payload)
        )

    def _calendar(self, event: Union[BookingConfirmed, BookingRescheduled], title: str) -> None:
        self._call(
            "calendar",
            event,
            lambda: self.calendar.create_event(
                event.booking_id,
                title,
                event.start_time,
                event.end_time,
                [event.client_id, event.provider_id],
            ),
        )

    def dispatch(self, event: BookingEvent) -> None:
        if isinstance(event, BookingRequested):
            self._call(
                "payment",
                event,
                lambda: self.payments.authorize(event.booking_id, event.price_amount, event.currency),
            )
            self._notify(event.provider_id, "booking.requested", event)
            self._notify(event.client_id, "booking.requested", event)
        elif isinstance(event, BookingConfirmed):
            self._notify(event.client_id, "booking.confirmed", event)
            self._calendar(event, f"Booking {event.reference}")
        elif isinstance(event, BookingCancelled):
            if event.refund_amount > 0:
                self._call(
                    "payment",
                    event,
                    lambda: self.payments.refund(event.booking_id, event.refund_amount, event.currency),
                )
            for user_id in (event.client_id, event.provider_id):
                if user_id != event.cancelled_by:
                    self._notify(user_id, "booking.cancelled", event)
        elif isinstance(event, BookingRescheduled):
            for user_id in (event.client_id, event.provider_id):
                if user_id != event.rescheduled_by:
                    self._notify(user_id, "booking.rescheduled", event)
            self._calendar(event, f"Booking {event.reference} (rescheduled)")
        elif isinstance(event, BookingCompleted):
            self._notify(event.client_id, "booking.completed", event)
            self._notify(event.provider_id, "booking.completed", event)
        else:
            raise TypeError(f"Unsupported booking event: {type(event).__name__}")
