# booking_engine/services/conflict_checker.py
"""
Overlap detection for provider bookings.

Intervals are half-open: a booking ending at 15:00 and one starting at 15:00
do not conflict. ``intervals_overlap`` is the only definition of overlap in
the engine; the repository query is its SQL form.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """True when [start_a, end_a) and [start_b, end_b) share any instant."""
    return start_a < end_b and start_b < end_a


class ConflictChecker(BaseService):
    """Scans a provider's active bookings for overlap with a candidate interval."""

    def __init__(self, db: Session, repository: Optional[BookingRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)

    def find_conflicts(
        self,
        provider_id: str,
        start_time: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        start = ensure_utc(start_time)
        end = start + timedelta(minutes=duration_minutes)
        candidates = self.repository.get_active_in_window(
            provider_id, start, end, exclude_booking_id=exclude_booking_id
        )
        return [
            booking
            for booking in candidates
            if intervals_overlap(start, end, booking.start_utc, booking.end_utc)
        ]

    @BaseService.measure_operation("has_conflict")
    def has_conflict(
        self,
        provider_id: str,
        start_time: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        conflicts = self.find_conflicts(
            provider_id, start_time, duration_minutes, exclude_booking_id=exclude_booking_id
        )
        if conflicts:
            self.logger.debug(
                "booking_conflict_detected",
                extra={
                    "provider_id": provider_id,
                    "conflicting_ids": [booking.id for booking in conflicts],
                },
            )
        return bool(conflicts)
