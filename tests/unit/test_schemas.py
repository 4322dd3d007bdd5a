from datetime import date, datetime, timezone

from pydantic import ValidationError
import pytest

from booking_engine.core.enums import RoleName
from booking_engine.core.exceptions import ValidationException
from booking_engine.schemas.availability import (
    DateOverride,
    DaySchedule,
    TimeRange,
    VacationRange,
    WeeklySchedule,
    clock_to_minutes,
    minutes_to_clock,
)
from booking_engine.schemas.booking import (
    CompleteBookingRequest,
    CreateBookingRequest,
    RescheduleBookingRequest,
    parse_booking_request,
)

CLIENT = {"user_id": "client-1", "role": "client"}


class TestTimeRange:
    def test_minutes(self):
        time_range = TimeRange(start="09:30", end="24:00")

        assert time_range.start_minutes == 570
        assert time_range.end_minutes == 1440
        assert minutes_to_clock(clock_to_minutes("17:45")) == "17:45"

    @pytest.mark.parametrize(
        "start,end",
        [("9:00", "10:00"), ("10:00", "10:00"), ("11:00", "10:00"), ("24:00", "24:00"), ("10:00", "24:30")],
    )
    def test_rejected(self, start, end):
        with pytest.raises(ValidationError):
            TimeRange(start=start, end=end)

    def test_day_schedule_sorts_and_rejects_overlap(self):
        day = DaySchedule(enabled=True, ranges=[{"start": "13:00", "end": "17:00"}, {"start": "09:00", "end": "12:00"}])

        assert [r.as_pair() for r in day.ranges] == [("09:00", "12:00"), ("13:00", "17:00")]
        with pytest.raises(ValidationError):
            DaySchedule(ranges=[{"start": "09:00", "end": "12:00"}, {"start": "11:00", "end": "13:00"}])

    def test_weekly_days_bounds(self):
        assert WeeklySchedule().for_day(3).enabled is False
        with pytest.raises(ValidationError):
            WeeklySchedule(days={7: {"enabled": True}})

    def test_closed_override_without_ranges(self):
        with pytest.raises(ValidationError):
            DateOverride(override_date=date(2024, 1, 1), available=False, ranges=[{"start": "09:00", "end": "10:00"}])

    def test_vacation_order(self):
        vacation = VacationRange(start_date=date(2024, 2, 1), end_date=date(2024, 2, 1))

        assert vacation.contains(date(2024, 2, 1))
        with pytest.raises(ValidationError):
            VacationRange(start_date=date(2024, 2, 2), end_date=date(2024, 2, 1))


class TestRequests:
    def test_naive_start_is_utc(self):
        request = CreateBookingRequest(
            actor=CLIENT, provider_id="p1", start_time=datetime(2024, 1, 10, 14, 0), duration_minutes=60
        )

        assert request.start_time == datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)
        assert request.actor.role == RoleName.CLIENT

    def test_normalizes_notes_and_currency(self):
        request = CreateBookingRequest(
            actor=CLIENT,
            provider_id="p1",
            start_time="2024-01-10T15:00:00+01:00",
            duration_minutes=60,
            notes="   ",
            currency="eur",
        )

        assert request.start_time.hour == 14
        assert request.notes is None
        assert request.currency == "EUR"

    def test_duplicate_extras(self):
        with pytest.raises(ValidationError):
            CreateBookingRequest(
                actor=CLIENT, provider_id="p1", start_time="2024-01-10T14:00:00Z",
                duration_minutes=60, extras=["dinner", "dinner"],
            )

    def test_requests_are_frozen(self):
        request = CompleteBookingRequest(booking_id="b1")

        with pytest.raises(ValidationError):
            request.booking_id = "b2"

    @pytest.mark.parametrize(
        "payload,expected",
        [
            ({"kind": "confirm_booking", "actor": {"user_id": "p1", "role": "provider"}, "booking_id": "b1"}, "confirm_booking"),
            ({"kind": "complete_booking", "booking_id": "b1"}, "complete_booking"),
            (
                {"kind": "reschedule_booking", "actor": CLIENT, "booking_id": "b1", "new_start_time": "2024-01-11T10:00:00Z"},
                "reschedule_booking",
            ),
        ],
    )
    def test_parse_resolves_kind(self, payload, expected):
        assert parse_booking_request(payload).kind == expected

    def test_parse_reports_locations(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_booking_request(
                {"kind": "reschedule_booking", "actor": CLIENT, "booking_id": "b1", "new_start_time": "soon"}
            )

        locations = [err["loc"] for err in exc_info.value.details["errors"]]
        assert any("new_start_time" in loc for loc in locations)
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_parsed_reschedule_is_typed(self):
        request = parse_booking_request(
            {"kind": "reschedule_booking", "actor": CLIENT, "booking_id": "b1", "new_start_time": "2024-01-11T10:00:00Z"}
        )

        assert isinstance(request, RescheduleBookingRequest)
        assert request.new_start_time.tzinfo is not None
