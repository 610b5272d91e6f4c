"""
Fan-out of the waterfall estimator over creators and tokens.

Three entry points:

- ``creator_waterfall``: one wallet across every token it earns from;
- ``token_waterfall``: every creator of one token, each allocated across
  all of their tokens, reporting only the slice for the queried token;
- ``all_creators_waterfall``: every discoverable creator wallet.

All collaborators are injected.  Upstream pacing lives in the clients'
token buckets, so nothing here sleeps.  A failure while inspecting one
token or one creator is logged and that item is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .constants import UNKNOWN_HANDLE
from .data_sources.bags import BagsClient
from .data_sources.solana_rpc import SolanaRpcClient
from .models import (
    AllCreatorsSummary,
    AllCreatorsWaterfallResult,
    CatalogToken,
    Creator,
    CreatorTokenEarning,
    TokenEarning,
    TokenWaterfallResult,
    WaterfallClaimResult,
)
from .token_catalog import TokenCatalog
from .wallet_lookup import WalletResolver
from .waterfall import AllocationPolicy, calculate_waterfall_claims

logger = logging.getLogger(__name__)


@dataclass
class _CreatorTokens:
    twitter_handle: str
    earnings: list[TokenEarning] = field(default_factory=list)


class FeeAttributionAggregator:
    def __init__(
        self,
        catalog: TokenCatalog,
        bags: BagsClient,
        resolver: WalletResolver,
        rpc: SolanaRpcClient,
        policy: AllocationPolicy | None = None,
    ) -> None:
        self._catalog = catalog
        self._bags = bags
        self._resolver = resolver
        self._rpc = rpc
        self._policy = policy

    async def _royalty_creators(self, token_address: str) -> list[Creator]:
        creators = await self._bags.get_token_creators(token_address)
        return [c for c in creators if c.royalty_bps > 0 and c.twitter_username]

    # ------------------------------------------------------------------
    # By creator
    # ------------------------------------------------------------------

    async def creator_waterfall(self, wallet_address: str) -> WaterfallClaimResult:
        """Waterfall for *wallet_address* across every token it has royalty on."""
        tokens = await self._catalog.get_tokens()
        earnings: list[TokenEarning] = []
        handle = UNKNOWN_HANDLE

        for token in tokens:
            try:
                for creator in await self._royalty_creators(token.token_address):
                    wallet = await self._resolver.resolve(creator.twitter_username)
                    if wallet != wallet_address:
                        continue
                    earnings.append(TokenEarning(
                        token_address=token.token_address,
                        token_symbol=token.token_symbol,
                        calculated_earnings=token.lifetime_fees_sol * creator.royalty_fraction,
                    ))
                    handle = creator.twitter_username
                    break
            except Exception:
                logger.warning("Failed to check token %s", token.token_symbol, exc_info=True)

        if not earnings:
            logger.info("No royalty tokens found for wallet %s", wallet_address)
            return WaterfallClaimResult(wallet_address=wallet_address, twitter_handle=UNKNOWN_HANDLE)

        return await calculate_waterfall_claims(
            wallet_address, handle, earnings, self._rpc, self._policy
        )

    # ------------------------------------------------------------------
    # By token
    # ------------------------------------------------------------------

    async def token_waterfall(
        self,
        token_address: str,
        token_symbol: str,
        total_fees_sol: float,
    ) -> TokenWaterfallResult:
        """Per-creator claimed slice of one token.

        Each creator's withdrawals are allocated across all of their
        tokens, so a creator who also earns from smaller tokens is not
        credited with claiming this one first.
        """
        creators = await self._royalty_creators(token_address)
        catalog: list[CatalogToken] | None = None
        creators_by_token: dict[str, list[Creator]] = {}
        results: list[CreatorTokenEarning] = []

        for creator in creators:
            try:
                wallet = await self._resolver.resolve(creator.twitter_username)
                if wallet is None:
                    continue
                if catalog is None:
                    catalog = await self._catalog.get_tokens()

                earnings = [TokenEarning(
                    token_address=token_address,
                    token_symbol=token_symbol,
                    calculated_earnings=total_fees_sol * creator.royalty_fraction,
                )]
                earnings.extend(await self._other_token_earnings(
                    creator, wallet, token_address, catalog, creators_by_token
                ))

                result = await calculate_waterfall_claims(
                    wallet, creator.twitter_username, earnings, self._rpc, self._policy
                )
                this_token = next(
                    (t for t in result.tokens if t.token_address == token_address), None
                )
                if this_token is not None:
                    results.append(this_token)
            except Exception:
                logger.warning(
                    "Failed waterfall for @%s on %s", creator.twitter_username, token_symbol,
                    exc_info=True,
                )

        total_calc = sum(r.calculated_earnings for r in results)
        total_claimed = sum(r.claimed_amount for r in results)
        return TokenWaterfallResult(
            token_address=token_address,
            token_symbol=token_symbol,
            total_fees_sol=total_fees_sol,
            creators=results,
            total_calculated_earnings=total_calc,
            total_claimed_amount=total_claimed,
            overall_claimed_percentage=total_claimed / total_calc * 100 if total_calc > 0 else 0.0,
        )

    async def _other_token_earnings(
        self,
        creator: Creator,
        wallet: str,
        exclude_token: str,
        catalog: list[CatalogToken],
        creators_by_token: dict[str, list[Creator]],
    ) -> list[TokenEarning]:
        handle = (creator.twitter_username or "").lower()
        earnings: list[TokenEarning] = []
        for other in catalog:
            if other.token_address == exclude_token:
                continue
            try:
                if other.token_address not in creators_by_token:
                    creators_by_token[other.token_address] = await self._royalty_creators(
                        other.token_address
                    )
                match = next(
                    (c for c in creators_by_token[other.token_address]
                     if (c.twitter_username or "").lower() == handle),
                    None,
                )
                if match is None:
                    continue
                if await self._resolver.resolve(match.twitter_username or "") != wallet:
                    continue
                earnings.append(TokenEarning(
                    token_address=other.token_address,
                    token_symbol=other.token_symbol,
                    calculated_earnings=other.lifetime_fees_sol * match.royalty_fraction,
                ))
            except Exception:
                logger.warning(
                    "Failed to check %s for @%s", other.token_symbol, creator.twitter_username,
                    exc_info=True,
                )
        return earnings

    # ------------------------------------------------------------------
    # All creators
    # ------------------------------------------------------------------

    async def all_creators_waterfall(self) -> AllCreatorsWaterfallResult:
        """Waterfall for every creator wallet found in the catalog."""
        by_wallet: dict[str, _CreatorTokens] = {}
        for token in await self._catalog.get_tokens():
            try:
                for creator in await self._royalty_creators(token.token_address):
                    wallet = await self._resolver.resolve(creator.twitter_username)
                    if wallet is None:
                        continue
                    entry = by_wallet.setdefault(wallet, _CreatorTokens(creator.twitter_username))
                    entry.earnings.append(TokenEarning(
                        token_address=token.token_address,
                        token_symbol=token.token_symbol,
                        calculated_earnings=token.lifetime_fees_sol * creator.royalty_fraction,
                    ))
            except Exception:
                logger.warning("Failed to process token %s", token.token_symbol, exc_info=True)

        results: list[WaterfallClaimResult] = []
        for wallet, entry in by_wallet.items():
            try:
                results.append(await calculate_waterfall_claims(
                    wallet, entry.twitter_handle, entry.earnings, self._rpc, self._policy
                ))
            except Exception:
                logger.warning("Failed waterfall for @%s", entry.twitter_handle, exc_info=True)

        return AllCreatorsWaterfallResult(
            total_creators=len(results),
            creators=results,
            summary=AllCreatorsSummary(
                total_calculated_earnings=sum(r.total_calculated_earnings for r in results),
                total_withdrawn=sum(r.total_withdrawn for r in results),
                total_current_balance=sum(r.current_balance for r in results),
            ),
        )
