"""In-process test doubles shared by unit and integration tests."""

from datetime import datetime, timedelta, timezone
import threading
import time
from typing import Any, Dict, Optional, Tuple

from booking_engine.core.reservation_lock import RELEASE_LUA


class FakeRedis:
    """Thread-safe subset of the redis client used by the reservation lock."""

    def __init__(self) -> None:
        self.store: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        self.set_calls = 0

    def _live(self, key: str) -> Optional[str]:
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self.store[key]
            return None
        return value

    def set(
        self,
        key: str,
        value: Any,
        nx: bool = False,
        ex: Optional[int] = None,
        px: Optional[int] = None,
    ) -> Optional[bool]:
        with self._lock:
            self.set_calls += 1
            if nx and self._live(key) is not None:
                return None
            expires_at = None
            if ex is not None:
                expires_at = time.monotonic() + ex
            elif px is not None:
                expires_at = time.monotonic() + px / 1000.0
            self.store[key] = (str(value), expires_at)
            return True

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def delete(self, *keys: str) -> int:
        with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self.store[key]
                    removed += 1
            return removed

    def ttl(self, key: str) -> int:
        with self._lock:
            if self._live(key) is None:
                return -2
            expires_at = self.store[key][1]
            if expires_at is None:
                return -1
            return int(round(expires_at - time.monotonic()))

    def eval(self, script: str, numkeys: int, *keys_and_args: Any) -> int:
        if script != RELEASE_LUA:
            raise NotImplementedError("FakeRedis only understands the lock release script")
        key, token = keys_and_args[0], keys_and_args[numkeys]
        with self._lock:
            if self._live(key) == str(token):
                del self.store[key]
                return 1
            return 0

    def expire_now(self, key: str) -> None:
        """Simulate the lock's TTL elapsing."""
        with self._lock:
            self.store.pop(key, None)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
