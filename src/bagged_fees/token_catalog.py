"""
Catalog of Bags-launched tokens and their lifetime fees.

Primary source is the Bagscreener mirror (one request for every token).
When the mirror is down the catalog is rebuilt from the Bags leaderboard
plus one ``lifetime-fees`` request per token, and that result is cached
for the same TTL.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .cache import TTLCache
from .data_sources.bags import BagsClient
from .data_sources.bagscreener import BagscreenerClient
from .data_sources.coingecko import CoinGeckoClient
from .data_sources.jupiter import JupiterClient
from .fee_share_tracker import fallback_token_name, fallback_token_symbol
from .models import CatalogToken, FeeOverview, TokenClaimedFees, TokenFeeOverview

logger = logging.getLogger(__name__)

_FALLBACK_CACHE_KEY = "catalog:leaderboard"


class TokenCatalog:
    def __init__(
        self,
        bagscreener: BagscreenerClient,
        bags: BagsClient,
        coingecko: CoinGeckoClient,
        jupiter: JupiterClient,
        cache: TTLCache,
    ) -> None:
        self._bagscreener = bagscreener
        self._bags = bags
        self._coingecko = coingecko
        self._jupiter = jupiter
        self._cache = cache

    async def get_tokens(self) -> list[CatalogToken]:
        """Every known token with its lifetime fees in SOL."""
        tokens = await self._bagscreener.get_tokens()
        if tokens:
            return tokens
        logger.warning("Bagscreener unavailable – rebuilding catalog from Bags leaderboard")
        return await self._leaderboard_tokens()

    async def _leaderboard_tokens(self) -> list[CatalogToken]:
        cached = self._cache.get(_FALLBACK_CACHE_KEY)
        if cached is not None:
            return cached

        tokens = await self._bags.get_leaderboard()
        enriched: list[CatalogToken] = []
        for token in tokens:
            fees = await self._bags.get_lifetime_fees(token.token_address)
            if fees is None:
                logger.info("No lifetime fees for %s – counted as 0", token.token_address)
            enriched.append(token.model_copy(update={"lifetime_fees_sol": fees or 0.0}))

        if enriched:
            self._cache.set(_FALLBACK_CACHE_KEY, enriched)
        logger.info("Catalog rebuilt from leaderboard: %d tokens", len(enriched))
        return enriched

    async def get_token_claimed_fees(self, token_address: str) -> Optional[TokenClaimedFees]:
        return await self._bagscreener.get_token_claimed_fees(token_address)

    async def get_token_info(self, token_address: str) -> dict[str, Any]:
        """Name, symbol and market data for one token.

        Bags token-find first, then a Jupiter price, then placeholder
        names derived from the address.
        """
        info = await self._bags.get_token_info(token_address)
        if info is not None:
            return {"address": token_address, **info}

        price = await self._jupiter.get_price(token_address)
        if price is None:
            logger.warning("Failed to fetch token info for %s", token_address)
        return {
            "address": token_address,
            "name": fallback_token_name(token_address),
            "symbol": fallback_token_symbol(token_address),
            "image_url": None,
            "market_cap_usd": None,
            "price_usd": price,
        }

    async def get_fee_overview(self) -> FeeOverview:
        """Tokens with non-zero lifetime fees, largest first, valued in USD."""
        tokens = [t for t in await self.get_tokens() if t.lifetime_fees_sol > 0]
        sol_price = await self._coingecko.get_sol_price() or 0.0
        tokens.sort(key=lambda t: t.lifetime_fees_sol, reverse=True)
        return FeeOverview(
            sol_price_usd=sol_price,
            total_lifetime_fees_sol=sum(t.lifetime_fees_sol for t in tokens),
            tokens=[
                TokenFeeOverview(
                    **t.model_dump(),
                    lifetime_fees_usd=t.lifetime_fees_sol * sol_price,
                )
                for t in tokens
            ],
        )
