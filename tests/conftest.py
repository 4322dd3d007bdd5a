from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from booking_engine.core.config import Settings
from booking_engine.core.enums import RoleName
from booking_engine.core.reservation_lock import ReservationLock
from booking_engine.database import Base
from booking_engine.events.dispatcher import BookingEventDispatcher
import booking_engine.models  # noqa: F401
from booking_engine.models.rate import ProviderRate
from booking_engine.repositories.availability_repository import AvailabilityRepository
from booking_engine.schemas.actor import Actor
from booking_engine.services.booking_service import BookingService
from tests.fakes import FakeRedis, FrozenClock, utc

PROVIDER_ID = "provider-1"
CLIENT_ID = "client-1"
OTHER_CLIENT_ID = "client-2"

WEEKDAY_HOURS = [["09:00", "17:00"]]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+pysqlite:///:memory:",
        lock_max_attempts=3,
        lock_backoff_base_ms=1,
        lock_backoff_max_ms=2,
    )


@pytest.fixture
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def unit_db(_unit_engine) -> Session:
    """Session on a fresh in-memory database."""
    SessionLocal = sessionmaker(bind=_unit_engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def reservation_lock(fake_redis, settings) -> ReservationLock:
    return ReservationLock(
        fake_redis,
        namespace=settings.lock_namespace,
        ttl_seconds=settings.lock_ttl_seconds,
        max_attempts=settings.lock_max_attempts,
        backoff_base_ms=settings.lock_backoff_base_ms,
        backoff_max_ms=settings.lock_backoff_max_ms,
        sleep=lambda _seconds: None,
    )


@pytest.fixture
def clock() -> FrozenClock:
    # Monday 2024-01-01 00:00 UTC
    return FrozenClock(utc(2024, 1, 1, 0, 0))


@pytest.fixture
def collaborators():
    return Mock(notifications=Mock(), payments=Mock(), calendar=Mock())


@pytest.fixture
def booking_service(unit_db, reservation_lock, settings, clock, collaborators) -> BookingService:
    dispatcher = BookingEventDispatcher(
        notifications=collaborators.notifications,
        payments=collaborators.payments,
        calendar=collaborators.calendar,
    )
    return BookingService(
        unit_db,
        reservation_lock,
        dispatcher=dispatcher,
        settings=settings,
        clock=clock,
    )


def seed_provider(session: Session, provider_id: str = PROVIDER_ID, timezone: str = "UTC") -> None:
    """Mon-Fri 09:00-17:00, Saturday 10:00-18:00, Sunday off; 100.00 EUR base rate."""
    repo = AvailabilityRepository(session)
    repo.upsert_calendar(provider_id, timezone)
    days = {day: (True, WEEKDAY_HOURS) for day in range(5)}
    days[5] = (True, [["10:00", "18:00"]])
    repo.replace_weekly_days(provider_id, days)
    session.add(
        ProviderRate(
            provider_id=provider_id, service_id=None, base_rate=Decimal("100.00"), currency="EUR"
        )
    )
    session.commit()


@pytest.fixture
def provider(unit_db) -> str:
    seed_provider(unit_db)
    return PROVIDER_ID


@pytest.fixture
def client_actor() -> Actor:
    return Actor(user_id=CLIENT_ID, role=RoleName.CLIENT)


@pytest.fixture
def other_client_actor() -> Actor:
    return Actor(user_id=OTHER_CLIENT_ID, role=RoleName.CLIENT)


@pytest.fixture
def provider_actor() -> Actor:
    return Actor(user_id=PROVIDER_ID, role=RoleName.PROVIDER)


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(user_id="admin-1", role=RoleName.ADMIN)
