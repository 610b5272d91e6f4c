"""
In-process TTL cache for upstream responses.

Instances are created by ``data_sources._clients`` and handed to the
components that need them (the token catalog caches the Bagscreener
mirror here).  The clock is injectable so expiry can be tested without
sleeping.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional


class TTLCache:
    """Dict-backed TTL cache.

    Not shared across processes – suitable for a single Uvicorn worker.
    Concurrent requests may race on a miss; the worst case is a duplicate
    upstream fetch.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_entries: int = 1_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: dict[str, tuple[float, Any]] = {}
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or ``None`` if missing / expired."""
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store *value* under *key* for *ttl* seconds (default TTL if omitted)."""
        actual_ttl = ttl if ttl is not None else self._default_ttl
        self._store[key] = (self._clock() + actual_ttl, value)
        if len(self._store) > self._max_entries:
            self._purge_expired()
            if len(self._store) > self._max_entries:
                oldest = sorted(self._store, key=lambda k: self._store[k][0])
                for k in oldest[: len(self._store) - self._max_entries]:
                    del self._store[k]

    def age(self, key: str) -> Optional[float]:
        """Seconds remaining before *key* expires, or ``None`` if absent."""
        entry = self._store.get(key)
        if entry is None:
            return None
        remaining = entry[0] - self._clock()
        return remaining if remaining > 0 else None

    def invalidate(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def _purge_expired(self) -> None:
        now = self._clock()
        for k in [k for k, (exp, _) in self._store.items() if now >= exp]:
            del self._store[k]

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._store)
