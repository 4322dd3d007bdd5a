"""
Availability schemas.

Clock values are ``HH:MM`` strings in the provider's local timezone.
``24:00`` is accepted as a range end meaning local midnight at the end of the
day.
"""

from __future__ import annotations

from datetime import date
import re
from typing import Dict, List, Optional, Tuple

from pydantic import Field, field_validator, model_validator

from ._strict_base import StrictModel, StrictRequestModel

_CLOCK_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$")
MINUTES_PER_DAY = 24 * 60


def clock_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_clock(value: int) -> str:
    return f"{value // 60:02d}:{value % 60:02d}"


class TimeRange(StrictRequestModel):
    start: str = Field(..., description="Range start, HH:MM")
    end: str = Field(..., description="Range end (exclusive), HH:MM or 24:00")

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        if not _CLOCK_RE.match(value):
            raise ValueError(f"Invalid time '{value}', expected HH:MM")
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "TimeRange":
        if clock_to_minutes(self.start) >= clock_to_minutes(self.end):
            raise ValueError("Time range start must be before end")
        if self.start == "24:00":
            raise ValueError("Time range cannot start at 24:00")
        return self

    @property
    def start_minutes(self) -> int:
        return clock_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return clock_to_minutes(self.end)

    def as_pair(self) -> Tuple[str, str]:
        return (self.start, self.end)


def _check_non_overlapping(ranges: List[TimeRange]) -> List[TimeRange]:
    ordered = sorted(ranges, key=lambda r: r.start_minutes)
    for prev, current in zip(ordered, ordered[1:]):
        if current.start_minutes < prev.end_minutes:
            raise ValueError(
                f"Time ranges overlap: {prev.start}-{prev.end} and {current.start}-{current.end}"
            )
    return ordered


class DaySchedule(StrictRequestModel):
    enabled: bool = False
    ranges: List[TimeRange] = Field(default_factory=list)

    @field_validator("ranges")
    @classmethod
    def validate_ranges(cls, value: List[TimeRange]) -> List[TimeRange]:
        return _check_non_overlapping(value)


class WeeklySchedule(StrictRequestModel):
    """Recurring template keyed by day of week, 0=Monday ... 6=Sunday."""

    days: Dict[int, DaySchedule] = Field(default_factory=dict)

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: Dict[int, DaySchedule]) -> Dict[int, DaySchedule]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError(f"Invalid day of week {day}; expected 0 (Monday) to 6 (Sunday)")
        return value

    def for_day(self, day_of_week: int) -> DaySchedule:
        return self.days.get(day_of_week, DaySchedule())


class DateOverride(StrictRequestModel):
    """
    Replaces the weekly template for one date.

    An available override without ranges opens the whole day.
    """

    override_date: date
    available: bool = True
    ranges: List[TimeRange] = Field(default_factory=list)

    @field_validator("ranges")
    @classmethod
    def validate_ranges(cls, value: List[TimeRange]) -> List[TimeRange]:
        return _check_non_overlapping(value)

    @model_validator(mode="after")
    def validate_closed_has_no_ranges(self) -> "DateOverride":
        if not self.available and self.ranges:
            raise ValueError("An unavailable override cannot define time ranges")
        return self


class VacationRange(StrictRequestModel):
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_order(self) -> "VacationRange":
        if self.end_date < self.start_date:
            raise ValueError("Vacation end_date must not be before start_date")
        return self

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date


class AvailabilitySnapshot(StrictModel):
    """Everything the availability check reads for one provider."""

    provider_id: str
    timezone: str = "UTC"
    weekly: WeeklySchedule = Field(default_factory=WeeklySchedule)
    overrides: Dict[date, DateOverride] = Field(default_factory=dict)
    vacations: List[VacationRange] = Field(default_factory=list)
