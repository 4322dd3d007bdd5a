"""
Timezone helpers.

All instants are persisted in UTC. Provider-local wall-clock values are only
derived at the edges (availability checks, surcharge days, slot listings).
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple

import pytz

from .exceptions import ValidationException


def get_timezone(tz_name: str) -> pytz.BaseTzInfo:
    """Resolve an IANA timezone name, raising ValidationException if unknown."""
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValidationException(
            f"Unknown timezone: {tz_name}", details={"timezone": tz_name}
        ) from exc


def ensure_utc(value: datetime) -> datetime:
    """
    Return ``value`` as an aware UTC datetime.

    Naive values are treated as UTC; SQLite hands back naive datetimes even
    for ``DateTime(timezone=True)`` columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(value: datetime, tz_name: str) -> datetime:
    return ensure_utc(value).astimezone(get_timezone(tz_name))


def local_to_utc(local_date: date, clock: time, tz_name: str) -> datetime:
    """Convert a wall-clock date and time in ``tz_name`` to UTC."""
    tz = get_timezone(tz_name)
    localized = tz.localize(datetime.combine(local_date, clock))
    return localized.astimezone(timezone.utc)


def local_day_bounds_utc(local_date: date, tz_name: str) -> Tuple[datetime, datetime]:
    """UTC instants bounding one local calendar day."""
    tz = get_timezone(tz_name)
    start = tz.localize(datetime.combine(local_date, time.min))
    end = tz.localize(datetime.combine(local_date + timedelta(days=1), time.min))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def seconds_of_day(value: datetime) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second
