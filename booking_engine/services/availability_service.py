# booking_engine/services/availability_service.py
"""
Availability Service

Answers "is the provider working during this interval?" from three layers,
most specific first: vacations, date overrides, the weekly template. All
clock arithmetic happens in the provider's timezone.

Also owns the write side of a provider's calendar. Writes are restricted to
the provider themself or an administrator and never touch bookings: existing
bookings stand even when availability later shrinks.
"""

from datetime import date, datetime
import logging
from typing import Any, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.enums import RoleName
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..core.timezone_utils import get_timezone, seconds_of_day, to_local
from ..models.availability import VacationPeriod
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.actor import Actor
from ..schemas.availability import (
    MINUTES_PER_DAY,
    AvailabilitySnapshot,
    DateOverride,
    DaySchedule,
    TimeRange,
    VacationRange,
    WeeklySchedule,
    clock_to_minutes,
)
from .base import BaseService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SECONDS_PER_DAY = MINUTES_PER_DAY * 60
FULL_DAY: List[Tuple[int, int]] = [(0, MINUTES_PER_DAY)]


def _to_minutes(ranges: Any) -> List[Tuple[int, int]]:
    return sorted((clock_to_minutes(start), clock_to_minutes(end)) for start, end in ranges or [])


def _coerce(model: Type[M], value: Union[M, Mapping[str, Any]]) -> M:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationException(
            f"Invalid {model.__name__}", details={"errors": errors}
        ) from exc


class AvailabilityService(BaseService):
    """Read and maintain provider availability."""

    def __init__(
        self,
        db: Session,
        repository: Optional[AvailabilityRepository] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_timezone(self, provider_id: str) -> str:
        calendar = self.repository.get_calendar(provider_id)
        return calendar.timezone if calendar else self.settings.default_timezone

    def day_ranges(self, provider_id: str, local_date: date) -> List[Tuple[int, int]]:
        """Effective availability for one local date as (start, end) minutes of day."""
        if self.repository.is_on_vacation(provider_id, local_date):
            return []

        override = self.repository.get_override(provider_id, local_date)
        if override is not None:
            if not override.is_available:
                return []
            return _to_minutes(override.ranges) or list(FULL_DAY)

        day = self.repository.get_weekly_day(provider_id, local_date.weekday())
        if day is None or not day.enabled:
            return []
        return _to_minutes(day.ranges)

    @BaseService.measure_operation("is_within_availability")
    def is_within_availability(
        self, provider_id: str, start_time: datetime, duration_minutes: int
    ) -> bool:
        """
        True when [start, start + duration) lies inside one availability range
        of a single local day.
        """
        if duration_minutes <= 0:
            return False
        tz_name = self.get_timezone(provider_id)
        local_start = to_local(start_time, tz_name)
        local_date = local_start.date()
        # Wall-clock start, elapsed duration: a DST shift inside the interval
        # neither shortens nor lengthens it.
        start_s = seconds_of_day(local_start)
        end_s = start_s + duration_minutes * 60
        if end_s > SECONDS_PER_DAY:
            return False

        for range_start, range_end in self.day_ranges(provider_id, local_date):
            if range_start * 60 <= start_s and end_s <= range_end * 60:
                return True
        return False

    def get_availability(self, provider_id: str) -> AvailabilitySnapshot:
        weekly = WeeklySchedule(
            days={
                row.day_of_week: DaySchedule(
                    enabled=row.enabled,
                    ranges=[TimeRange(start=s, end=e) for s, e in row.ranges or []],
                )
                for row in self.repository.get_weekly_days(provider_id)
            }
        )
        overrides = {
            row.override_date: DateOverride(
                override_date=row.override_date,
                available=row.is_available,
                ranges=[TimeRange(start=s, end=e) for s, e in row.ranges or []],
            )
            for row in self.repository.list_overrides(provider_id)
        }
        vacations = [
            VacationRange(start_date=row.start_date, end_date=row.end_date, reason=row.reason)
            for row in self.repository.list_vacations(provider_id)
        ]
        return AvailabilitySnapshot(
            provider_id=provider_id,
            timezone=self.get_timezone(provider_id),
            weekly=weekly,
            overrides=overrides,
            vacations=vacations,
        )

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def _ensure_can_manage(self, actor: Actor, provider_id: str) -> None:
        if actor.is_admin:
            return
        if actor.role == RoleName.PROVIDER and actor.user_id == provider_id:
            return
        raise ForbiddenException(
            "Only the provider or an administrator can change availability",
            details={"provider_id": provider_id, "actor_id": actor.user_id},
        )

    @BaseService.measure_operation("set_timezone")
    def set_timezone(self, actor: Actor, provider_id: str, tz_name: str) -> str:
        self._ensure_can_manage(actor, provider_id)
        get_timezone(tz_name)
        with self.transaction():
            self.repository.upsert_calendar(provider_id, tz_name)
        self.log_operation("set_timezone", provider_id=provider_id, timezone=tz_name)
        return tz_name

    @BaseService.measure_operation("set_weekly_schedule")
    def set_weekly_schedule(
        self,
        actor: Actor,
        provider_id: str,
        schedule: Union[WeeklySchedule, Mapping[str, Any]],
    ) -> WeeklySchedule:
        self._ensure_can_manage(actor, provider_id)
        schedule = _coerce(WeeklySchedule, schedule)
        with self.transaction():
            self.repository.replace_weekly_days(
                provider_id,
                {
                    day: (day_schedule.enabled, [r.as_pair() for r in day_schedule.ranges])
                    for day, day_schedule in schedule.days.items()
                },
            )
        self.log_operation(
            "set_weekly_schedule",
            provider_id=provider_id,
            enabled_days=sorted(d for d, s in schedule.days.items() if s.enabled),
        )
        return schedule

    @BaseService.measure_operation("copy_day_schedule")
    def copy_day_schedule(self, actor: Actor, provider_id: str, from_day: int) -> WeeklySchedule:
        """Copy ``from_day``'s ranges onto every other enabled day of the template."""
        self._ensure_can_manage(actor, provider_id)
        if from_day < 0 or from_day > 6:
            raise ValidationException(
                "from_day must be between 0 (Monday) and 6 (Sunday)", details={"from_day": from_day}
            )
        rows = {row.day_of_week: row for row in self.repository.get_weekly_days(provider_id)}
        source = rows.get(from_day)
        if source is None or not source.enabled or not source.ranges:
            raise ValidationException(
                "Source day has no availability to copy", details={"from_day": from_day}
            )
        days = {
            day: (row.enabled, source.ranges if row.enabled else row.ranges)
            for day, row in rows.items()
        }
        with self.transaction():
            self.repository.replace_weekly_days(provider_id, days)
        self.log_operation("copy_day_schedule", provider_id=provider_id, from_day=from_day)
        return self.get_availability(provider_id).weekly

    @BaseService.measure_operation("set_date_override")
    def set_date_override(
        self,
        actor: Actor,
        provider_id: str,
        override: Union[DateOverride, Mapping[str, Any]],
    ) -> DateOverride:
        self._ensure_can_manage(actor, provider_id)
        override = _coerce(DateOverride, override)
        with self.transaction():
            self.repository.upsert_override(
                provider_id,
                override.override_date,
                override.available,
                [r.as_pair() for r in override.ranges],
            )
        self.log_operation(
            "set_date_override",
            provider_id=provider_id,
            date=override.override_date.isoformat(),
            available=override.available,
        )
        return override

    @BaseService.measure_operation("remove_date_override")
    def remove_date_override(self, actor: Actor, provider_id: str, on_date: date) -> None:
        self._ensure_can_manage(actor, provider_id)
        with self.transaction():
            removed = self.repository.delete_override(provider_id, on_date)
        if not removed:
            raise NotFoundException(
                "No override for that date",
                details={"provider_id": provider_id, "date": on_date.isoformat()},
            )

    @BaseService.measure_operation("add_vacation")
    def add_vacation(
        self,
        actor: Actor,
        provider_id: str,
        vacation: Union[VacationRange, Mapping[str, Any]],
    ) -> VacationPeriod:
        self._ensure_can_manage(actor, provider_id)
        vacation = _coerce(VacationRange, vacation)
        with self.transaction():
            period = self.repository.create_vacation(
                provider_id, vacation.start_date, vacation.end_date, vacation.reason
            )
        self.log_operation(
            "add_vacation",
            provider_id=provider_id,
            start_date=vacation.start_date.isoformat(),
            end_date=vacation.end_date.isoformat(),
        )
        return period

    @BaseService.measure_operation("remove_vacation")
    def remove_vacation(self, actor: Actor, provider_id: str, vacation_id: str) -> None:
        self._ensure_can_manage(actor, provider_id)
        with self.transaction():
            removed = self.repository.delete_vacation(provider_id, vacation_id)
        if not removed:
            raise NotFoundException(
                "Vacation not found", details={"provider_id": provider_id, "vacation_id": vacation_id}
            )
