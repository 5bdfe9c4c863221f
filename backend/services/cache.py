"""In-process cache for computed metrics."""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


class MetricsCache:
    """TTL cache with a size cap and one in-flight computation per key.

    Failed computations are not stored; the exception reaches the caller and
    the next request for the key computes again.
    """

    def __init__(self, ttl_seconds: float = 600, max_entries: int = 100,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries = OrderedDict()
        self._lock = threading.Lock()
        # key -> [lock, number of threads using it]; dropped when unused
        self._key_locks = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup(self, key: Hashable):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return False, None
            return True, value

    def _store(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock(), value)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted!r}")

    def _acquire_key_lock(self, key: Hashable) -> threading.Lock:
        with self._lock:
            holder = self._key_locks.setdefault(key, [threading.Lock(), 0])
            holder[1] += 1
            return holder[0]

    def _release_key_lock(self, key: Hashable) -> None:
        with self._lock:
            holder = self._key_locks[key]
            holder[1] -= 1
            if holder[1] == 0:
                del self._key_locks[key]

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        hit, value = self._lookup(key)
        if hit:
            logger.debug(f"Cache hit for {key!r}")
            return value

        key_lock = self._acquire_key_lock(key)
        try:
            with key_lock:
                # another thread may have filled it while we waited
                hit, value = self._lookup(key)
                if hit:
                    return value

                logger.debug(f"Cache miss for {key!r}, computing")
                value = compute()
                self._store(key, value)
                return value
        finally:
            self._release_key_lock(key)

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when no key is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
