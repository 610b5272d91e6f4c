"""
Fee-share wallet discovery.

Lists a token's creators on Bags, keeps those with a non-zero royalty
and resolves each one's twitter handle to its registered payout wallet.
``track_fee_share_wallets`` does the same for a whole list of tokens.
"""

from __future__ import annotations

import asyncio
import logging

from .constants import FEE_SHARE_BATCH_SIZE
from .data_sources.bags import BagsClient
from .models import CatalogToken, FeeShareWallet, TokenFeeShareData
from .wallet_lookup import WalletResolver

logger = logging.getLogger(__name__)

# Placeholder symbol some front-end links carry when the real one is unknown
_PLACEHOLDER_SYMBOL = "TOKEN"


def fallback_token_name(token_address: str) -> str:
    return f"Token {token_address[-4:]}"


def fallback_token_symbol(token_address: str) -> str:
    return f"TKN{token_address[-3:]}"


async def get_token_fee_share_wallets(
    token_address: str,
    token_symbol: str,
    token_name: str,
    *,
    bags: BagsClient,
    resolver: WalletResolver,
) -> TokenFeeShareData:
    """Return every royalty-bearing fee-share wallet on *token_address*.

    Missing name / symbol (or the ``TOKEN`` placeholder) are looked up via
    Bags token-find, falling back to names derived from the address.
    Creators without a twitter handle or without a registered wallet are
    skipped.
    """
    symbol, name = token_symbol, token_name
    if not name or not symbol or symbol == _PLACEHOLDER_SYMBOL:
        info = await bags.get_token_info(token_address) or {}
        known_symbol = symbol if symbol and symbol != _PLACEHOLDER_SYMBOL else None
        name = info.get("name") or name or fallback_token_name(token_address)
        symbol = info.get("symbol") or known_symbol or fallback_token_symbol(token_address)
        logger.info("Token info for %s: %s (%s)", token_address, symbol, name)

    creators = await bags.get_token_creators(token_address)
    with_royalty = [c for c in creators if c.royalty_bps > 0]
    logger.info(
        "%s: %d creator(s), %d with royalty",
        symbol, len(creators), len(with_royalty),
    )

    wallets: list[FeeShareWallet] = []
    for creator in with_royalty:
        if not creator.twitter_username:
            continue
        wallet = await resolver.resolve(creator.twitter_username)
        if wallet is None:
            logger.info("No fee-share wallet for @%s", creator.twitter_username)
            continue
        wallets.append(FeeShareWallet(
            twitter_handle=creator.twitter_username,
            wallet_address=wallet,
            token_address=token_address,
            token_symbol=symbol,
            royalty_bps=creator.royalty_bps,
        ))

    return TokenFeeShareData(
        token_address=token_address,
        token_symbol=symbol,
        token_name=name,
        fee_share_wallets=wallets,
    )


async def track_fee_share_wallets(
    tokens: list[CatalogToken],
    *,
    bags: BagsClient,
    resolver: WalletResolver,
) -> list[TokenFeeShareData]:
    """Fee-share wallets for every token in *tokens*, in catalog order.

    Tokens are inspected in concurrent batches.  A token that fails is
    logged and skipped; tokens without any resolved wallet are left out.
    """
    results: list[TokenFeeShareData] = []
    batches = range(0, len(tokens), FEE_SHARE_BATCH_SIZE)
    for number, start in enumerate(batches, 1):
        batch = tokens[start:start + FEE_SHARE_BATCH_SIZE]
        logger.debug("Fee-share batch %d/%d", number, len(batches))
        outcomes = await asyncio.gather(
            *[
                get_token_fee_share_wallets(
                    t.token_address, t.token_symbol, t.token_name,
                    bags=bags, resolver=resolver,
                )
                for t in batch
            ],
            return_exceptions=True,
        )
        for token, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Failed to track fee-share wallets for %s: %s",
                    token.token_symbol or token.token_address, outcome,
                )
                continue
            if outcome.fee_share_wallets:
                results.append(outcome)

    logger.info(
        "Fee-share tracking: %d of %d tokens have wallets (%d wallets)",
        len(results), len(tokens), sum(len(r.fee_share_wallets) for r in results),
    )
    return results
