"""
CoinGecko client: SOL/USD spot price for the fee overview.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ._retry import async_http_get
from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)


class CoinGeckoClient:
    """Async client for the CoinGecko ``simple/price`` endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 15,
        max_retries: int = 2,
        limiter: TokenBucket | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._limiter = limiter
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_sol_price(self) -> Optional[float]:
        """Current SOL price in USD, or ``None`` if unavailable."""
        client = await self._get_client()
        data = await async_http_get(
            client, f"{self._base_url}/simple/price",
            params={"ids": "solana", "vs_currencies": "usd"},
            max_retries=self._max_retries, limiter=self._limiter,
            label="CoinGecko",
        )
        try:
            return float(data["solana"]["usd"])
        except (TypeError, KeyError, ValueError):
            logger.warning("CoinGecko SOL price unavailable: %r", data)
            return None
