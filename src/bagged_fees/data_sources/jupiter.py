"""
Jupiter price client for the Bagged Fees service.

Reference: https://station.jup.ag/docs/apis/price-api-v2

Used as the price fallback when Bags ``token/find`` has nothing for a
token.  Public endpoint, no API key required.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ._retry import async_http_get
from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)

_MAX_RETRIES = 2
_BACKOFF_BASE = 1.0

_JUPITER_PRICE_BASE = "https://api.jup.ag/price/v2"
# Price API limit per request
_MAX_IDS = 100


class JupiterClient:
    """Async client for the Jupiter price API."""

    def __init__(
        self,
        timeout: int = 15,
        limiter: TokenBucket | None = None,
        price_url: str = _JUPITER_PRICE_BASE,
    ) -> None:
        self._timeout = timeout
        self._limiter = limiter
        self._price_url = price_url
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

    async def _get(self, url: str, params: dict | None = None) -> Any:
        client = await self._get_client()
        return await async_http_get(
            client, url, params=params,
            max_retries=_MAX_RETRIES, backoff_base=_BACKOFF_BASE,
            limiter=self._limiter, label="Jupiter",
        )

    async def get_prices(self, mints: list[str]) -> dict[str, Optional[float]]:
        """Fetch current USD prices for one or more token mints.

        Returns a dict mapping mint → price (or None if unavailable).
        """
        if not mints:
            return {}

        ids = ",".join(mints[:_MAX_IDS])
        data = await self._get(self._price_url, params={"ids": ids})
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            return {m: None for m in mints}

        result: dict[str, Optional[float]] = {}
        for mint in mints:
            entry = data["data"].get(mint)
            if entry and entry.get("price") is not None:
                try:
                    result[mint] = float(entry["price"])
                except (TypeError, ValueError):
                    result[mint] = None
            else:
                result[mint] = None
        return result

    async def get_price(self, mint: str) -> Optional[float]:
        """Fetch the current USD price for a single token."""
        prices = await self.get_prices([mint])
        return prices.get(mint)
