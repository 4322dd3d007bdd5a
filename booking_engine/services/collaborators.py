"""
Outbound collaborator interfaces.

The engine only ever calls these after a transition has committed. Concrete
implementations (email, push, payment provider, calendar provider) live
outside the engine; the Null* classes are the defaults.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, Protocol, Sequence

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class PaymentGateway(Protocol):
    def authorize(self, booking_id: str, amount: Decimal, currency: str) -> None:
        ...

    def refund(self, booking_id: str, amount: Decimal, currency: str) -> None:
        ...


class CalendarSink(Protocol):
    def create_event(
        self,
        booking_id: str,
        title: str,
        start: datetime,
        end: datetime,
        attendees: Sequence[str],
    ) -> None:
        ...


class NullNotificationSink:
    def notify(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        logger.debug("notification_skipped", extra={"user_id": user_id, "event": event})


class NullPaymentGateway:
    def authorize(self, booking_id: str, amount: Decimal, currency: str) -> None:
        logger.debug("payment_authorize_skipped", extra={"booking_id": booking_id})

    def refund(self, booking_id: str, amount: Decimal, currency: str) -> None:
        logger.debug("payment_refund_skipped", extra={"booking_id": booking_id})


class NullCalendarSink:
    def create_event(
        self,
        booking_id: str,
        title: str,
        start: datetime,
        end: datetime,
        attendees: Sequence[str],
    ) -> None:
        logger.debug("calendar_event_skipped", extra={"booking_id": booking_id})
