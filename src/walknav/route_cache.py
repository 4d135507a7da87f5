# route_cache.py
# Time-bounded route cache with in-flight request sharing.
# Safe to share between clients and sessions.

import logging
import threading
import time
from concurrent.futures import Executor, Future
from typing import Callable, Dict, Hashable, Optional, Tuple

from .models import Route

logger = logging.getLogger(__name__)


class RouteCache:
    """
    Maps a request key to a Route for ttl_s seconds.

    Concurrent lookups for a key that is still being fetched receive the
    same Future, so only one request goes out. Failed fetches are not stored.

    Args:
        ttl_s: Entry lifetime in seconds.
        clock: Monotonic time source (seconds).
    """

    def __init__(self, ttl_s: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Tuple[float, Route]] = {}
        self._inflight: Dict[Hashable, Future] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, key: Hashable) -> Optional[Route]:
        """Cached route if still fresh, else None."""
        with self._lock:
            return self._fresh(key)

    def get_or_submit(
        self,
        key: Hashable,
        fetch: Callable[[], Route],
        executor: Executor,
    ) -> Future:
        """
        Return a Future for key: resolved from cache, shared in-flight,
        or a new fetch submitted to the executor.
        """
        with self._lock:
            route = self._fresh(key)
            if route is not None:
                done: Future = Future()
                done.set_result(route)
                return done

            pending = self._inflight.get(key)
            if pending is not None:
                logger.debug(f"Joining in-flight request for {key}")
                return pending

            future = executor.submit(fetch)
            self._inflight[key] = future

        future.add_done_callback(lambda f: self._settle(key, f))
        return future

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        """Number of stored entries, expired ones included until the next eviction."""
        with self._lock:
            return len(self._entries)

    @property
    def inflight_count(self) -> int:
        with self._lock:
            return len(self._inflight)

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _fresh(self, key: Hashable) -> Optional[Route]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, route = entry
        if self._clock() - stored_at < self.ttl_s:
            return route
        del self._entries[key]
        return None

    def _settle(self, key: Hashable, future: Future) -> None:
        with self._lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]
            now = self._clock()
            self._evict_expired(now)
            if future.cancelled() or future.exception() is not None:
                return
            self._entries[key] = (now, future.result())

    def _evict_expired(self, now: float) -> None:
        stale = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_s]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug(f"Evicted {len(stale)} expired routes")
