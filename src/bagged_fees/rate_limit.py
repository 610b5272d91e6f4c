"""
Async token-bucket pacing for upstream APIs.

Every data-source client is handed a ``TokenBucket`` and awaits
``acquire()`` before each outbound request, so the business logic never
sleeps on its own.  Buckets are registered by name so the health
endpoint can report them.

Usage
-----
    from bagged_fees.rate_limit import TokenBucket

    bucket = TokenBucket("bags", rate=5, burst=5)
    await bucket.acquire()
    resp = await client.get(url)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket refilled continuously at *rate* tokens per second.

    Parameters
    ----------
    name:
        Human-readable name for logging and the health endpoint.
    rate:
        Refill rate in tokens per second.
    burst:
        Bucket capacity; also the number of tokens available at start.
    clock / sleep:
        Injectable time source and sleeper (tests pass fakes).
    """

    def __init__(
        self,
        name: str,
        *,
        rate: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.name = name
        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = asyncio.Lock()
        self.total_acquired = 0
        self.total_waited_s = 0.0

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self, tokens: float = 1.0) -> float:
        """Take *tokens* from the bucket, waiting if needed.

        Returns the number of seconds spent waiting.
        """
        if tokens > self.burst:
            raise ValueError(f"cannot acquire {tokens} tokens from a bucket of {self.burst}")
        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    break
                wait = (tokens - self._tokens) / self.rate
                logger.debug("TokenBucket '%s' empty – waiting %.3fs", self.name, wait)
                await self._sleep(wait)
                waited += wait
        self.total_acquired += 1
        self.total_waited_s += waited
        return waited

    def status(self) -> dict[str, Any]:
        """Return a serialisable status dict for the health endpoint."""
        return {
            "rate_per_s": self.rate,
            "burst": self.burst,
            "available": round(self.available, 2),
            "total_acquired": self.total_acquired,
            "total_waited_s": round(self.total_waited_s, 3),
        }


# ---------------------------------------------------------------------------
# Registry – all buckets are registered here for health reporting
# ---------------------------------------------------------------------------
_registry: dict[str, TokenBucket] = {}


def register(bucket: TokenBucket) -> TokenBucket:
    """Register a bucket in the global registry."""
    _registry[bucket.name] = bucket
    return bucket


def get_all_statuses() -> dict[str, dict[str, Any]]:
    """Return status of every registered bucket."""
    return {name: b.status() for name, b in _registry.items()}
