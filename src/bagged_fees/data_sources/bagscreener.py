"""
Bagscreener community mirror client.

The mirror publishes every Bags-launched token with lifetime and claimed
fee figures in one payload.  It is reached through a CORS proxy and the
whole response is cached for ``TOKEN_LIST_TTL_SECONDS`` in the injected
``TTLCache``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ._retry import async_http_get
from ..cache import TTLCache
from ..models import CatalogToken, TokenClaimedFees
from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)

_CACHE_KEY = "bagscreener:tokens"


class BagscreenerClient:
    """Async client for the Bagscreener cached token list."""

    def __init__(
        self,
        url: str,
        cache: TTLCache,
        timeout: int = 15,
        max_retries: int = 2,
        limiter: TokenBucket | None = None,
    ) -> None:
        self._url = url
        self._cache = cache
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

    async def _fetch_raw(self) -> Optional[list[dict[str, Any]]]:
        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            logger.debug("Using cached Bagscreener data")
            return cached

        client = await self._get_client()
        data = await async_http_get(
            client, self._url,
            max_retries=self._max_retries, limiter=self._limiter,
            label="Bagscreener",
        )
        tokens = data.get("tokens") if isinstance(data, dict) else None
        if not isinstance(tokens, list):
            logger.warning("Bagscreener returned no token list")
            return None
        self._cache.set(_CACHE_KEY, tokens)
        logger.info("Fetched %d tokens from Bagscreener", len(tokens))
        return tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_tokens(self) -> Optional[list[CatalogToken]]:
        """All mirrored tokens, or ``None`` when the mirror is unreachable."""
        raw = await self._fetch_raw()
        if raw is None:
            return None
        tokens: list[CatalogToken] = []
        for entry in raw:
            token = _to_catalog_token(entry)
            if token is not None:
                tokens.append(token)
        return tokens

    async def get_token_claimed_fees(self, token_address: str) -> Optional[TokenClaimedFees]:
        """Lifetime / claimed fees the mirror reports for one token."""
        tokens = await self.get_tokens()
        if tokens is None:
            return None
        wanted = token_address.lower()
        match = next((t for t in tokens if t.token_address.lower() == wanted), None)
        if match is None:
            logger.info("Token %s not found in Bagscreener data", token_address)
            return None

        lifetime = match.lifetime_fees_sol
        claimed = match.claimed_fees_sol or 0.0
        pct = min(100.0, claimed / lifetime * 100) if lifetime > 0 else 0.0
        return TokenClaimedFees(
            lifetime_fees=lifetime,
            claimed_fees=claimed,
            claimed_percentage=max(0.0, pct),
        )


def _to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_catalog_token(entry: Any) -> Optional[CatalogToken]:
    if not isinstance(entry, dict) or not entry.get("token_address"):
        return None
    try:
        return CatalogToken(
            token_address=entry["token_address"],
            token_symbol=entry.get("token_symbol") or entry.get("symbol") or "",
            token_name=entry.get("token_name") or entry.get("name") or "",
            image_url=entry.get("image_url"),
            lifetime_fees_sol=max(0.0, _to_float(entry.get("lifetime_fees_sol")) or 0.0),
            claimed_fees_sol=_to_float(entry.get("fees_claimed_sol"), None),
            price_usd=_to_float(entry.get("price_usd"), None),
            market_cap_usd=_to_float(entry.get("market_cap_usd"), None),
        )
    except ValidationError:
        logger.warning("Skipping malformed Bagscreener entry: %r", entry.get("token_address"))
        return None
