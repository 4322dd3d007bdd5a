# booking_engine/repositories/availability_repository.py
"""Data access for provider calendars, weekly templates, overrides and vacations."""

from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import (
    AvailabilityOverride,
    ProviderCalendar,
    VacationPeriod,
    WeeklyScheduleDay,
)
from .base_repository import BaseRepository


class AvailabilityRepository(BaseRepository[WeeklyScheduleDay]):
    def __init__(self, db: Session):
        super().__init__(db, WeeklyScheduleDay)

    # Calendar

    def get_calendar(self, provider_id: str) -> Optional[ProviderCalendar]:
        return self.db.get(ProviderCalendar, provider_id)

    def upsert_calendar(self, provider_id: str, timezone: str) -> ProviderCalendar:
        try:
            calendar = self.get_calendar(provider_id)
            if calendar is None:
                calendar = ProviderCalendar(provider_id=provider_id, timezone=timezone)
                self.db.add(calendar)
            else:
                calendar.timezone = timezone
            self.db.flush()
            return calendar
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save calendar: {str(e)}") from e

    # Weekly template

    def get_weekly_days(self, provider_id: str) -> List[WeeklyScheduleDay]:
        try:
            return (
                self.db.query(WeeklyScheduleDay)
                .filter(WeeklyScheduleDay.provider_id == provider_id)
                .order_by(WeeklyScheduleDay.day_of_week)
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load weekly schedule: {str(e)}") from e

    def get_weekly_day(self, provider_id: str, day_of_week: int) -> Optional[WeeklyScheduleDay]:
        return self.db.get(WeeklyScheduleDay, (provider_id, day_of_week))

    def replace_weekly_days(
        self, provider_id: str, days: Dict[int, Tuple[bool, Sequence[Sequence[str]]]]
    ) -> List[WeeklyScheduleDay]:
        """Replace the whole template; days missing from ``days`` become disabled."""
        try:
            existing = {row.day_of_week: row for row in self.get_weekly_days(provider_id)}
            for day_of_week in range(7):
                enabled, ranges = days.get(day_of_week, (False, []))
                row = existing.get(day_of_week)
                if row is None:
                    row = WeeklyScheduleDay(provider_id=provider_id, day_of_week=day_of_week)
                    self.db.add(row)
                row.enabled = enabled
                row.ranges = [list(pair) for pair in ranges]
            self.db.flush()
            return self.get_weekly_days(provider_id)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save weekly schedule: {str(e)}") from e

    # Overrides

    def get_override(self, provider_id: str, on_date: date) -> Optional[AvailabilityOverride]:
        try:
            return (
                self.db.query(AvailabilityOverride)
                .filter(
                    AvailabilityOverride.provider_id == provider_id,
                    AvailabilityOverride.override_date == on_date,
                )
                .first()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load override: {str(e)}") from e

    def list_overrides(self, provider_id: str) -> List[AvailabilityOverride]:
        try:
            return (
                self.db.query(AvailabilityOverride)
                .filter(AvailabilityOverride.provider_id == provider_id)
                .order_by(AvailabilityOverride.override_date)
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to list overrides: {str(e)}") from e

    def upsert_override(
        self,
        provider_id: str,
        on_date: date,
        is_available: bool,
        ranges: Sequence[Sequence[str]],
    ) -> AvailabilityOverride:
        try:
            override = self.get_override(provider_id, on_date)
            if override is None:
                override = AvailabilityOverride(provider_id=provider_id, override_date=on_date)
                self.db.add(override)
            override.is_available = is_available
            override.ranges = [list(pair) for pair in ranges]
            self.db.flush()
            return override
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save override: {str(e)}") from e

    def delete_override(self, provider_id: str, on_date: date) -> bool:
        override = self.get_override(provider_id, on_date)
        if override is None:
            return False
        self.db.delete(override)
        self.db.flush()
        return True

    # Vacations

    def list_vacations(self, provider_id: str) -> List[VacationPeriod]:
        try:
            return (
                self.db.query(VacationPeriod)
                .filter(VacationPeriod.provider_id == provider_id)
                .order_by(VacationPeriod.start_date)
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to list vacations: {str(e)}") from e

    def is_on_vacation(self, provider_id: str, on_date: date) -> bool:
        try:
            return (
                self.db.query(VacationPeriod.id)
                .filter(
                    VacationPeriod.provider_id == provider_id,
                    VacationPeriod.start_date <= on_date,
                    VacationPeriod.end_date >= on_date,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to check vacations: {str(e)}") from e

    def create_vacation(
        self, provider_id: str, start_date: date, end_date: date, reason: Optional[str]
    ) -> VacationPeriod:
        try:
            vacation = VacationPeriod(
                provider_id=provider_id, start_date=start_date, end_date=end_date, reason=reason
            )
            self.db.add(vacation)
            self.db.flush()
            return vacation
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save vacation: {str(e)}") from e

    def delete_vacation(self, provider_id: str, vacation_id: str) -> bool:
        vacation = self.db.get(VacationPeriod, vacation_id)
        if vacation is None or vacation.provider_id != provider_id:
            return False
        self.db.delete(vacation)
        self.db.flush()
        return True
