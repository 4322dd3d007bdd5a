from decimal import Decimal

import pytest

from booking_engine.core.exceptions import InvalidStateException
from booking_engine.models.booking import Booking, BookingStatus
from booking_engine.services.booking_state_machine import (
    BookingTransition,
    allowed_transitions,
    apply_transition,
    next_status,
)
from tests.fakes import utc

NOW = utc(2024, 1, 5, 12, 0)


def _booking(status: BookingStatus) -> Booking:
    return Booking(
        id="b1",
        status=status.value,
        start_time=utc(2024, 1, 10, 14, 0),
        end_time=utc(2024, 1, 10, 15, 0),
        price_amount=Decimal("100.00"),
        currency="EUR",
    )


@pytest.mark.parametrize(
    "status, transition, expected",
    [
        (BookingStatus.PENDING, BookingTransition.CONFIRM, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingTransition.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingTransition.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingTransition.COMPLETE, BookingStatus.COMPLETED),
        (BookingStatus.PENDING, BookingTransition.RESCHEDULE, BookingStatus.PENDING),
        (BookingStatus.CONFIRMED, BookingTransition.RESCHEDULE, BookingStatus.CONFIRMED),
    ],
)
def test_legal_transitions(status, transition, expected):
    assert next_status(status, transition) == expected


@pytest.mark.parametrize(
    "status, transition",
    [
        (BookingStatus.PENDING, BookingTransition.COMPLETE),
        (BookingStatus.CONFIRMED, BookingTransition.CONFIRM),
        (BookingStatus.CANCELLED, BookingTransition.CANCEL),
        (BookingStatus.CANCELLED, BookingTransition.CONFIRM),
        (BookingStatus.CANCELLED, BookingTransition.RESCHEDULE),
        (BookingStatus.COMPLETED, BookingTransition.CANCEL),
        (BookingStatus.COMPLETED, BookingTransition.RESCHEDULE),
    ],
)
def test_illegal_transitions(status, transition):
    with pytest.raises(InvalidStateException):
        next_status(status, transition)


def test_terminal_states_have_no_exits():
    assert allowed_transitions(BookingStatus.COMPLETED) == frozenset()
    assert allowed_transitions(BookingStatus.CANCELLED) == frozenset()


def test_apply_sets_status_timestamp_and_fields():
    booking = _booking(BookingStatus.CONFIRMED)

    apply_transition(
        booking,
        BookingTransition.CANCEL,
        NOW,
        cancelled_by_id="c1",
        cancellation_reason="sick",
    )

    assert booking.status == "cancelled"
    assert booking.cancelled_at == NOW
    assert booking.cancelled_by_id == "c1"
    assert booking.cancellation_reason == "sick"


def test_illegal_apply_writes_nothing():
    booking = _booking(BookingStatus.CANCELLED)

    with pytest.raises(InvalidStateException):
        apply_transition(booking, BookingTransition.CONFIRM, NOW)

    assert booking.status == "cancelled"
    assert booking.confirmed_at is None


def test_unknown_field_rejected():
    with pytest.raises(AttributeError):
        apply_transition(_booking(BookingStatus.PENDING), BookingTransition.CONFIRM, NOW, colour="red")
