"""Time-based cache with in-flight request coalescing.

Used for expensive downstream aggregations over a finished generation (the
lecturer index). While a rebuild is running, every other caller waits for
that same rebuild instead of starting its own.
"""

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Generic, TypeVar

from timetable_ingest.logging import get_logger

T = TypeVar("T")

log = get_logger(__name__)


class CoalescingCache(Generic[T]):
    """Caches the result of builder() for ttl_seconds."""

    def __init__(
        self,
        builder: Callable[[], T],
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._builder = builder
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: T | None = None
        self._built_at: float | None = None
        self._inflight: Future | None = None
        # Bumped by invalidate(); builds started under an older value are not stored
        self._generation = 0

    def _is_fresh(self) -> bool:
        return self._built_at is not None and self._clock() - self._built_at < self._ttl

    def get(self) -> T:
        """Return the cached value, rebuilding it once when stale.

        A failed build is raised to every caller waiting on it and is not
        cached. A build that was running when invalidate() was called is
        handed to its waiters but never cached.
        """
        with self._lock:
            if self._is_fresh():
                return self._value
            if self._inflight is not None:
                future = self._inflight
                owner = False
            else:
                future = Future()
                self._inflight = future
                owner = True
            generation = self._generation

        if not owner:
            return future.result()

        try:
            value = self._builder()
        except BaseException as e:
            with self._lock:
                if self._inflight is future:
                    self._inflight = None
            future.set_exception(e)
            log.warning("cache_rebuild_failed", error=str(e))
            raise

        with self._lock:
            if self._generation == generation:
                self._value = value
                self._built_at = self._clock()
            else:
                log.debug("cache_rebuild_discarded")
            if self._inflight is future:
                self._inflight = None
        future.set_result(value)
        log.debug("cache_rebuilt")
        return value

    def invalidate(self) -> None:
        """Drop the cached value; the next get() starts a fresh build."""
        with self._lock:
            self._generation += 1
            self._built_at = None
            self._value = None
            self._inflight = None
