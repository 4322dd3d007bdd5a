# booking_engine/repositories/factory.py
"""
Repository Factory.

Centralizes repository creation so services receive their data access
objects through one seam that tests can replace.
"""

from sqlalchemy.orm import Session

from .availability_repository import AvailabilityRepository
from .booking_repository import BookingRepository
from .rate_repository import RateRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> AvailabilityRepository:
        return AvailabilityRepository(db)

    @staticmethod
    def create_rate_repository(db: Session) -> RateRepository:
        return RateRepository(db)
