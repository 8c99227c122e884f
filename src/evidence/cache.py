"""In-memory LRU/TTL cache and a per-client fixed-window rate limiter.

Both are plain objects owned by whoever constructs them (the fetcher, the
provider chain) so tests and separate tenants get isolated state.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from evidence.errors import RateLimitError


class TTLCache:
    """Bounded LRU cache whose entries expire ``max_age`` seconds after being set."""

    def __init__(
        self,
        max_size: int = 500,
        max_age: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size
        self.max_age = max_age
        self._clock = clock
        self._store: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        """Return the cached value, or None when missing or older than the window.

        ``max_age`` narrows the freshness window for this lookup without
        evicting entries that are stale for it but still within the cache's
        own ``max_age``.
        """
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, value = entry
        age = self._clock() - ts
        if age > self.max_age:
            del self._store[key]
            return None
        if max_age is not None and age > max_age:
            return None
        self._store.move_to_end(key)
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (self._clock(), value)
        self._store.move_to_end(key)
        while len(self._store) > self.max_size:
            self._store.popitem(last=False)

    def clear(self) -> None:
        self._store.clear()

    def keys(self) -> list[str]:
        return list(self._store.keys())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class RateLimiter:
    """Fixed-window request counter keyed by client (usually an IP)."""

    def __init__(
        self,
        max_requests: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}

    def check(self, key: str) -> bool:
        """Count one request for ``key``; False when the window is exhausted."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window[1]:
            self._windows[key] = (1, now + self.window)
            return True
        count, reset_at = window
        if count >= self.max_requests:
            return False
        self._windows[key] = (count + 1, reset_at)
        return True

    def hit(self, key: str, url: str = "") -> None:
        if not self.check(key):
            raise RateLimitError(url, "Rate limit exceeded. Please try again later.")

    def reset(self) -> None:
        self._windows.clear()
