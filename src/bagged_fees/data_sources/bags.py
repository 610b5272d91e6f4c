"""
Bags.fm API client for the Bagged Fees service.

Two hosts are involved:

- the public ``api2`` endpoints (creator list, leaderboard, lifetime fees,
  token find) need no credentials;
- the ``public-api-v2`` fee-share wallet lookup requires ``x-api-key``.

Every method degrades to an empty / ``None`` result on upstream failure
and logs a warning; nothing here raises for network problems.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ._retry import async_http_get
from ..constants import lamports_to_sol
from ..models import CatalogToken, Creator
from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)

_BACKOFF_BASE = 1.0


def _unwrap(data: Any) -> Any:
    """Return ``response`` from a ``{success, response}`` envelope, else ``None``."""
    if isinstance(data, dict) and data.get("success") and data.get("response") is not None:
        return data["response"]
    return None


class BagsClient:
    """Async wrapper around the Bags REST API."""

    def __init__(
        self,
        public_base_url: str,
        api_base_url: str,
        api_key: str = "",
        timeout: int = 15,
        max_retries: int = 2,
        limiter: TokenBucket | None = None,
    ) -> None:
        self._public_base = public_base_url.rstrip("/")
        self._api_base = api_base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._limiter = limiter
        self._public_client: httpx.AsyncClient | None = None
        self._keyed_client: httpx.AsyncClient | None = None

    async def _get_client(self, keyed: bool = False) -> httpx.AsyncClient:
        if keyed:
            if self._keyed_client is None or self._keyed_client.is_closed:
                self._keyed_client = httpx.AsyncClient(
                    timeout=self._timeout,
                    headers={
                        "Accept": "application/json",
                        "Content-Type": "application/json",
                        "x-api-key": self._api_key,
                    },
                )
            return self._keyed_client
        if self._public_client is None or self._public_client.is_closed:
            self._public_client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
        return self._public_client

    async def close(self) -> None:
        for client in (self._public_client, self._keyed_client):
            if client and not client.is_closed:
                await client.aclose()

    async def _get(self, url: str, params: dict | None = None, *, keyed: bool = False) -> Any:
        client = await self._get_client(keyed)
        return await async_http_get(
            client, url, params=params,
            max_retries=self._max_retries, backoff_base=_BACKOFF_BASE,
            limiter=self._limiter, label="Bags",
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_token_creators(self, token_mint: str) -> list[Creator]:
        """Return the creator / fee-share list for a token (``[]`` on failure)."""
        data = await self._get(
            f"{self._public_base}/token-launch/creator/v2",
            params={"tokenMint": token_mint},
        )
        raw = _unwrap(data)
        if not isinstance(raw, list):
            if data is not None:
                logger.warning("Unexpected creator payload for %s: %r", token_mint, data)
            return []
        creators: list[Creator] = []
        for entry in raw:
            try:
                creators.append(Creator.model_validate(entry))
            except ValidationError:
                logger.warning("Skipping malformed creator entry for %s: %r", token_mint, entry)
        return creators

    async def get_fee_share_wallet(self, twitter_username: str) -> Optional[str]:
        """Resolve a twitter handle to its registered fee-share wallet."""
        if not self._api_key:
            logger.warning("BAGS_API_KEY not set – cannot resolve @%s", twitter_username)
            return None
        data = await self._get(
            f"{self._api_base}/token-launch/fee-share/wallet/twitter",
            params={"twitterUsername": twitter_username},
            keyed=True,
        )
        wallet = _unwrap(data)
        if not isinstance(wallet, str) or not wallet:
            logger.info("No fee-share wallet found for @%s", twitter_username)
            return None
        return wallet

    async def get_leaderboard(self) -> list[CatalogToken]:
        """Tokens on the launch leaderboard (no fee figures attached)."""
        data = await self._get(f"{self._public_base}/token-launch/leaderboard")
        raw = _unwrap(data)
        if not isinstance(raw, list):
            return []
        tokens: list[CatalogToken] = []
        for entry in raw:
            address = entry.get("tokenAddress") if isinstance(entry, dict) else None
            if not address:
                continue
            tokens.append(CatalogToken(
                token_address=address,
                token_symbol=entry.get("symbol") or "",
                token_name=entry.get("name") or "",
                image_url=entry.get("image"),
                price_usd=_safe_float(entry.get("price")),
            ))
        return tokens

    async def get_lifetime_fees(self, token_mint: str) -> Optional[float]:
        """Lifetime fees accrued by a token, in SOL; ``None`` on failure."""
        data = await self._get(
            f"{self._public_base}/token-launch/lifetime-fees",
            params={"tokenMint": token_mint},
        )
        lamports = _safe_float(_unwrap(data))
        if lamports is None:
            return None
        return lamports_to_sol(lamports)

    async def get_token_info(self, token_address: str) -> Optional[dict[str, Any]]:
        """Name / symbol / market data from ``bags/token/find``."""
        data = await self._get(
            f"{self._public_base}/bags/token/find",
            params={"tokenAddress": token_address},
        )
        response = _unwrap(data)
        token = response.get("cryptoToken") if isinstance(response, dict) else None
        if not isinstance(token, dict):
            return None
        return {
            "name": token.get("name") or "",
            "symbol": token.get("symbol") or "",
            "image_url": token.get("image"),
            "market_cap_usd": _safe_float((token.get("fdmc") or {}).get("fdmc")),
            "price_usd": _safe_float((token.get("price") or {}).get("price")),
        }


def _safe_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
