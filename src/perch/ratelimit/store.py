"""Rate limit bucket storage.

The store is the one piece of state shared by concurrent dispatches, so
``increment`` must be atomic: two updates racing for the last slot must
never both be admitted. ``MemoryStore`` guards its buckets with a lock;
an external cache backend can be plugged in by implementing the same
four methods on top of an atomic increment-with-expiry.
"""

import math
import threading
import time
from collections.abc import Callable
from typing import Protocol


class RateLimitStore(Protocol):
    def increment(self, key: str, window_seconds: int) -> int:
        """Add one hit and return the count in the current window."""
        ...

    def get(self, key: str) -> int: ...

    def available_in(self, key: str) -> int:
        """Seconds until the current window of *key* resets (0 if none)."""
        ...

    def reset(self, key: str) -> None: ...


class MemoryStore:
    """In-process fixed-window counters.

    A window starts at the first hit and lasts ``window_seconds``; the
    count resets once it has elapsed.
    """

    __slots__ = ("_buckets", "_clock", "_lock")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (count, window_ends_at)
        self._buckets: dict[str, tuple[int, float]] = {}

    def increment(self, key: str, window_seconds: int) -> int:
        now = self._clock()
        with self._lock:
            count, ends_at = self._buckets.get(key, (0, 0.0))
            if now >= ends_at:
                count = 0
                ends_at = now + window_seconds
            count += 1
            self._buckets[key] = (count, ends_at)
            return count

    def get(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            count, ends_at = self._buckets.get(key, (0, 0.0))
            return count if now < ends_at else 0

    def available_in(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            _count, ends_at = self._buckets.get(key, (0, 0.0))
            return max(0, math.ceil(ends_at - now))

    def reset(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)

    def __len__(self) -> int:
        return len(self._buckets)
