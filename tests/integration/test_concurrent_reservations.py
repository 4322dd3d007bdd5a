"""Many threads racing for one provider against a real SQLite file."""

from collections import Counter
from datetime import timedelta
import itertools
import threading

import pytest

from booking_engine.core.config import Settings
from booking_engine.core.enums import RoleName
from booking_engine.core.exceptions import ResourceBusyException, SlotUnavailableException
from booking_engine.core.reservation_lock import ReservationLock
from booking_engine.database import create_db_engine, create_session_factory, init_db
from booking_engine.models.booking import Booking
from booking_engine.schemas.actor import Actor
from booking_engine.schemas.booking import CreateBookingRequest
from booking_engine.services.booking_service import BookingService
from booking_engine.services.conflict_checker import intervals_overlap
from tests.conftest import PROVIDER_ID, seed_provider
from tests.fakes import FakeRedis, FrozenClock, utc

pytestmark = pytest.mark.integration

THREADS = 50


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'bookings.db'}",
        lock_max_attempts=40,
        lock_backoff_base_ms=5,
        lock_backoff_max_ms=50,
    )


@pytest.fixture
def session_factory(settings):
    engine = create_db_engine(settings=settings)
    init_db(engine)
    factory = create_session_factory(engine)
    with factory() as session:
        seed_provider(session)
    yield factory
    engine.dispose()


@pytest.fixture
def shared_lock(settings):
    return ReservationLock.from_settings(FakeRedis(), settings)


def _race(session_factory, shared_lock, settings, starts):
    """Run one create_booking per start time, all released at once; returns outcomes."""
    barrier = threading.Barrier(len(starts))
    outcomes = []
    outcomes_lock = threading.Lock()
    clock = FrozenClock(utc(2024, 1, 1))

    def worker(index, start):
        session = session_factory()
        service = BookingService(session, shared_lock, settings=settings, clock=clock)
        request = CreateBookingRequest(
            actor=Actor(user_id=f"client-{index}", role=RoleName.CLIENT),
            provider_id=PROVIDER_ID,
            start_time=start,
            duration_minutes=60,
        )
        barrier.wait()
        try:
            service.create_booking(request)
            outcome = "created"
        except (SlotUnavailableException, ResourceBusyException) as exc:
            outcome = exc.code
        except Exception as exc:
            outcome = f"unexpected:{type(exc).__name__}:{exc}"
        finally:
            session.close()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(i, start)) for i, start in enumerate(starts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=120)
    return Counter(outcomes)


def _active_bookings(session_factory):
    with session_factory() as session:
        return (
            session.query(Booking)
            .filter(Booking.provider_id == PROVIDER_ID, Booking.status.in_(["pending", "confirmed"]))
            .all()
        )


def test_exactly_one_winner_for_identical_slot(session_factory, shared_lock, settings):
    outcomes = _race(session_factory, shared_lock, settings, [utc(2024, 1, 10, 14, 0)] * THREADS)

    assert outcomes["created"] == 1
    assert outcomes["SLOT_UNAVAILABLE"] + outcomes["RESOURCE_BUSY"] == THREADS - 1
    assert len(_active_bookings(session_factory)) == 1


def test_overlapping_requests_never_double_book(session_factory, shared_lock, settings):
    # Starts every 15 minutes across the working day, each duplicated, so
    # neighbours overlap and every slot is contended.
    base = utc(2024, 1, 10, 9, 0)
    starts = list(
        itertools.chain.from_iterable(
            (base + timedelta(minutes=15 * step),) * 2 for step in range(25)
        )
    )

    outcomes = _race(session_factory, shared_lock, settings, starts)

    assert not [key for key in outcomes if key.startswith("unexpected")]
    active = _active_bookings(session_factory)
    assert len(active) == outcomes["created"] >= 1
    for first, second in itertools.combinations(active, 2):
        assert not intervals_overlap(first.start_utc, first.end_utc, second.start_utc, second.end_utc)
