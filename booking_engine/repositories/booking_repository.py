# booking_engine/repositories/booking_repository.py
"""
Booking data access.

Overlap queries use the half-open interval predicate
``existing.start < candidate.end AND candidate.start < existing.end``, the
SQL form of ``conflict_checker.intervals_overlap``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ParticipantRole
from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from .base_repository import BaseRepository

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_active_in_window(
        self,
        provider_id: str,
        window_start: datetime,
        window_end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Active bookings of ``provider_id`` intersecting [window_start, window_end)."""
        try:
            query = self.db.query(Booking).filter(
                Booking.provider_id == provider_id,
                Booking.status.in_(_ACTIVE_VALUES),
                Booking.start_time < window_end,
                Booking.end_time > window_start,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}") from e

    def get_active_for_provider(self, provider_id: str) -> List[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.provider_id == provider_id, Booking.status.in_(_ACTIVE_VALUES))
                .order_by(Booking.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load active bookings: {str(e)}") from e

    def list_for_participant(
        self,
        user_id: str,
        as_role: ParticipantRole,
        statuses: Optional[Sequence[BookingStatus]] = None,
        starts_at_or_after: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 10,
        newest_first: bool = True,
    ) -> Tuple[List[Booking], int]:
        """Page of bookings where ``user_id`` is the client or provider, plus the total."""
        try:
            column = Booking.provider_id if as_role == ParticipantRole.PROVIDER else Booking.client_id
            query = self.db.query(Booking).filter(column == user_id)
            if statuses:
                query = query.filter(Booking.status.in_([s.value for s in statuses]))
            if starts_at_or_after is not None:
                query = query.filter(Booking.start_time >= starts_at_or_after)
            if starts_before is not None:
                query = query.filter(Booking.start_time < starts_before)
            total = query.count()
            order = Booking.start_time.desc() if newest_first else Booking.start_time.asc()
            items = query.order_by(order).offset(offset).limit(limit).all()
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}") from e

    def get_confirmed_ending_before(self, cutoff: datetime, limit: int = 500) -> List[Booking]:
        """Confirmed bookings whose service window has fully elapsed."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.end_time <= cutoff,
                )
                .order_by(Booking.end_time)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load completable bookings: {str(e)}") from e

    def count_by_status(self, provider_id: str) -> Dict[str, int]:
        try:
            rows = (
                self.db.query(Booking.status, func.count(Booking.id))
                .filter(Booking.provider_id == provider_id)
                .group_by(Booking.status)
                .all()
            )
            return {status: int(count) for status, count in rows}
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to count bookings: {str(e)}") from e

    def completed_earnings(self, provider_id: str) -> Dict[str, Decimal]:
        """Sum of completed booking prices per currency."""
        try:
            rows = (
                self.db.query(Booking.currency, Booking.price_amount)
                .filter(
                    Booking.provider_id == provider_id,
                    Booking.status == BookingStatus.COMPLETED.value,
                )
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to sum earnings: {str(e)}") from e
        totals: Dict[str, Decimal] = {}
        for currency, amount in rows:
            totals[currency] = totals.get(currency, Decimal("0.00")) + Decimal(amount)
        return totals
