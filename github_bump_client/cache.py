"""In-memory cache with per-entry expiry."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


def bucket_expiry(now: float, ttl: int) -> float:
    """End of the fixed-size time bucket containing `now`."""
    return now - (now % ttl) + ttl


class ExpiringCache:
    """Explicit (key, value, expiry) store handed to whoever needs memoization."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def get(self, key: str, default=None):
        entry = self._entries.get(key)
        if entry is None:
            return default
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return default
        return entry.value

    def set(self, key: str, value, expires_at: float) -> None:
        self._entries[key] = CacheEntry(value, expires_at)

    def get_or_set(self, key: str, factory: Callable[[], Any], expires_at: float):
        """Return the live value for key, computing and storing it if absent."""
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > self._clock():
            return entry.value
        value = factory()
        self.set(key, value, expires_at)
        return value

    def purge(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)


_MISSING = object()
