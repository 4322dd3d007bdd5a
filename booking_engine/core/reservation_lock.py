"""
Provider-scoped reservation lock backed by Redis.

Acquisition is a single ``SET key token NX EX ttl``; release is an atomic
compare-and-delete so a holder whose lease expired can never remove a lock
that another worker has since acquired. Any Redis failure counts as a failed
attempt: the lock fails closed and the caller gets ResourceBusyException once
the retry budget is spent.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
import random
import secrets
import time
from typing import Callable, Iterator, Optional

from redis import Redis
from redis.exceptions import RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import Settings, get_settings
from .exceptions import ResourceBusyException

logger = logging.getLogger(__name__)

RELEASE_LUA = """
if redis.call('get', KEYS[1]) == ARGV[1] then
  return redis.call('del', KEYS[1])
end
return 0
"""


@dataclass(frozen=True)
class LockHandle:
    key: str
    token: str
    provider_id: str
    acquired_at: float


class ReservationLock:
    """Mutual exclusion over one provider's booking calendar."""

    def __init__(
        self,
        client: Redis,
        *,
        namespace: str = "booking",
        ttl_seconds: int = 30,
        max_attempts: int = 5,
        backoff_base_ms: int = 50,
        backoff_max_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.backoff_base_ms = backoff_base_ms
        self.backoff_max_ms = backoff_max_ms
        self._sleep = sleep
        self._jitter = jitter

    @classmethod
    def from_settings(cls, client: Redis, settings: Optional[Settings] = None) -> "ReservationLock":
        settings = settings or get_settings()
        return cls(
            client,
            namespace=settings.lock_namespace,
            ttl_seconds=settings.lock_ttl_seconds,
            max_attempts=settings.lock_max_attempts,
            backoff_base_ms=settings.lock_backoff_base_ms,
            backoff_max_ms=settings.lock_backoff_max_ms,
        )

    def key_for(self, provider_id: str) -> str:
        return f"{self.namespace}:lock:provider:{provider_id}:reservation"

    def backoff_seconds(self, attempt: int) -> float:
        """Exponential backoff with jitter for the pause after ``attempt`` (1-based)."""
        ceiling = min(self.backoff_max_ms, self.backoff_base_ms * (2 ** (attempt - 1)))
        return (ceiling * (0.5 + self._jitter() / 2)) / 1000.0

    def _try_set(self, key: str, token: str, provider_id: str) -> bool:
        try:
            return bool(self.client.set(key, token, nx=True, ex=self.ttl_seconds))
        except RedisError as exc:
            prometheus_metrics.record_reservation_lock("acquire", "error")
            logger.warning(
                "reservation_lock_acquire_error",
                extra={
                    "provider_id": provider_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

    def acquire(self, provider_id: str) -> LockHandle:
        """Acquire the provider lock or raise ResourceBusyException."""
        key = self.key_for(provider_id)
        started = time.monotonic()

        for attempt in range(1, self.max_attempts + 1):
            token = secrets.token_hex(16)
            if self._try_set(key, token, provider_id):
                waited = time.monotonic() - started
                prometheus_metrics.record_reservation_lock("acquire", "success")
                prometheus_metrics.observe_lock_wait("success", waited)
                logger.debug(
                    "reservation_lock_acquired",
                    extra={"provider_id": provider_id, "attempt": attempt},
                )
                return LockHandle(
                    key=key, token=token, provider_id=provider_id, acquired_at=time.monotonic()
                )
            if attempt < self.max_attempts:
                self._sleep(self.backoff_seconds(attempt))

        waited = time.monotonic() - started
        prometheus_metrics.record_reservation_lock("acquire", "busy")
        prometheus_metrics.observe_lock_wait("busy", waited)
        logger.info(
            "reservation_lock_busy",
            extra={"provider_id": provider_id, "attempts": self.max_attempts},
        )
        raise ResourceBusyException(
            details={"provider_id": provider_id, "attempts": self.max_attempts}
        )

    def release(self, handle: LockHandle) -> bool:
        """
        Release the lock if ``handle`` still owns it.

        Returns False when the lease had expired (and possibly been taken by
        another worker) or Redis could not be reached; the key then expires on
        its own TTL.
        """
        held_for = time.monotonic() - handle.acquired_at
        try:
            deleted = self.client.eval(RELEASE_LUA, 1, handle.key, handle.token)
        except RedisError as exc:
            prometheus_metrics.record_reservation_lock("release", "error")
            logger.warning(
                "reservation_lock_release_error",
                extra={
                    "provider_id": handle.provider_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        if deleted:
            prometheus_metrics.record_reservation_lock("release", "success")
            return True

        prometheus_metrics.record_reservation_lock("release", "not_owner")
        logger.error(
            "reservation_lock_lost_before_release",
            extra={
                "provider_id": handle.provider_id,
                "held_seconds": round(held_for, 3),
                "ttl_seconds": self.ttl_seconds,
            },
        )
        return False

    @contextmanager
    def hold(self, provider_id: str) -> Iterator[LockHandle]:
        handle = self.acquire(provider_id)
        try:
            yield handle
        finally:
            self.release(handle)
