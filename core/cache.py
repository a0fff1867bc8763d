"""
Short-lived read-through cache for store queries
"""
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

import structlog

logger = structlog.get_logger(__name__)


class _Miss:
    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class ReadThroughCache:
    """Per-key cache with a fixed TTL.

    ``ttl=None`` disables expiry; such entries live until invalidated.
    ``get_or_fetch`` shares a single in-flight fetch between concurrent
    callers of the same key. Failed fetches are never cached.
    """

    def __init__(self, ttl: Optional[float] = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._in_flight: Dict[Hashable, Future] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self.ttl is None or (self._clock() - entry.stored_at) < self.ttl

    def get(self, key: Hashable) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            if not self._is_fresh(entry):
                del self._entries[key]
                return MISS
            return entry.value

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock())

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: Hashable) -> None:
        """Drop every tuple key whose first element is ``prefix``"""
        with self._lock:
            for key in [k for k in self._entries if isinstance(k, tuple) and k and k[0] == prefix]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_fetch(self, key: Hashable, fetch: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry):
                return entry.value

            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            return future.result()

        try:
            value = fetch()
        except Exception as exc:
            logger.warning("cache_fetch_failed", key=repr(key), error=str(exc))
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock())
            self._in_flight.pop(key, None)
        future.set_result(value)
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
