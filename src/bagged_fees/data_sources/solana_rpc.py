"""
Solana RPC client for the Bagged Fees service.

Uses the standard JSON-RPC interface over ``httpx``.  The public
``api.mainnet-beta.solana.com`` endpoint works but is rate-limited, so
every call is paced through the injected token bucket.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ._retry import async_http_post_json
from ..constants import lamports_to_sol
from ..models import BalanceLookup
from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)

_BACKOFF_BASE = 1.5  # seconds


class SolanaRpcClient:
    """Async Solana JSON-RPC client."""

    def __init__(
        self,
        endpoint: str,
        timeout: int = 15,
        max_retries: int = 1,
        limiter: TokenBucket | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: httpx.AsyncClient | None = None
        self._id_counter = 0
        self._limiter = limiter

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_balance(self, wallet: str) -> BalanceLookup:
        """Return the wallet's SOL balance at ``confirmed`` commitment.

        A failed or malformed response yields ``ok=False`` with a zero
        balance; this method never raises.
        """
        result = await self._call("getBalance", [wallet, {"commitment": "confirmed"}])
        lamports: Any = result.get("value") if isinstance(result, dict) else None
        if not isinstance(lamports, int) or isinstance(lamports, bool) or lamports < 0:
            logger.warning("Balance lookup failed for %s – substituting 0", wallet)
            return BalanceLookup(wallet_address=wallet, balance_sol=0.0, ok=False)
        return BalanceLookup(wallet_address=wallet, balance_sol=lamports_to_sol(lamports))

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int = 1000,
        before: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """One page of signatures, newest first.  ``[]`` on failure."""
        options: dict[str, Any] = {"limit": limit, "commitment": "confirmed"}
        if before:
            options["before"] = before
        result = await self._call("getSignaturesForAddress", [address, options])
        if not isinstance(result, list):
            return []
        return result

    async def get_transaction(self, signature: str) -> Optional[dict[str, Any]]:
        """Fetch a transaction with balance metadata, or ``None``."""
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        return result if isinstance(result, dict) else None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: list[Any]) -> Any:
        """JSON-RPC call; returns the ``result`` member or ``None``."""
        self._id_counter += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id_counter,
            "method": method,
            "params": params,
        }
        client = await self._get_client()
        return await async_http_post_json(
            client,
            self._endpoint,
            json_payload=payload,
            max_retries=self._max_retries,
            backoff_base=_BACKOFF_BASE,
            limiter=self._limiter,
            label=f"Solana RPC ({method})",
        )
