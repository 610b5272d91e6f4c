"""
Single-token claimed-percentage estimates.

- quick: balance-delta heuristic over the token's fee-share wallets
  (what they should hold minus what they do hold);
- full: transaction-history scan of each wallet's recent withdrawals.

Both treat the token in isolation; use the aggregator's token waterfall
when creators earn from several tokens.
"""

from __future__ import annotations

import logging

from .constants import CLAIMED_PERCENTAGE_TX_LIMIT
from .data_sources.bags import BagsClient
from .data_sources.solana_rpc import SolanaRpcClient
from .fee_share_tracker import get_token_fee_share_wallets
from .models import TokenClaimedData, TokenFeeShareData
from .waterfall import estimate_withdrawn
from .wallet_lookup import WalletResolver
from .withdrawal_analyzer import analyze_wallet_withdrawals

logger = logging.getLogger(__name__)


def _empty(token_address: str, token_symbol: str, total_fees_sol: float, error: str | None = None) -> TokenClaimedData:
    return TokenClaimedData(
        token_address=token_address,
        token_symbol=token_symbol,
        total_fees_sol=total_fees_sol,
        remaining_sol=total_fees_sol,
        error=error,
    )


async def _fee_share(
    token_address: str, token_symbol: str, bags: BagsClient, resolver: WalletResolver
) -> TokenFeeShareData:
    return await get_token_fee_share_wallets(
        token_address, token_symbol, f"{token_symbol} Token", bags=bags, resolver=resolver
    )


async def calculate_token_claimed_percentage_quick(
    token_address: str,
    token_symbol: str,
    total_fees_sol: float,
    *,
    bags: BagsClient,
    resolver: WalletResolver,
    rpc: SolanaRpcClient,
) -> TokenClaimedData:
    """Estimate from current balances: withdrawn = expected − held, capped at 100 %."""
    try:
        fee_share = await _fee_share(token_address, token_symbol, bags, resolver)
        if not fee_share.fee_share_wallets:
            logger.info("No fee-share wallets for %s", token_symbol)
            return _empty(token_address, token_symbol, total_fees_sol)

        total_calc = sum(
            total_fees_sol * w.royalty_percentage / 100 for w in fee_share.fee_share_wallets
        )

        total_balance = 0.0
        unknown = 0
        seen: set[str] = set()
        for wallet in fee_share.fee_share_wallets:
            if wallet.wallet_address in seen:
                continue
            seen.add(wallet.wallet_address)
            lookup = await rpc.get_balance(wallet.wallet_address)
            if not lookup.ok:
                unknown += 1
            total_balance += lookup.balance_sol

        withdrawn = estimate_withdrawn(total_calc, total_balance)
        pct = min(100.0, withdrawn / total_calc * 100) if total_calc > 0 else 0.0
        logger.info(
            "%s quick: expected %.4f, held %.4f, withdrawn %.4f (%.1f%%)",
            token_symbol, total_calc, total_balance, withdrawn, pct,
        )
        return TokenClaimedData(
            token_address=token_address,
            token_symbol=token_symbol,
            total_fees_sol=total_fees_sol,
            total_calculated_earnings=total_calc,
            total_withdrawals=withdrawn,
            claimed_percentage=pct,
            remaining_sol=total_balance,
            balances_unknown=unknown,
        )
    except Exception as exc:
        logger.exception("Quick claimed-percentage failed for %s", token_symbol)
        return _empty(token_address, token_symbol, total_fees_sol, str(exc) or type(exc).__name__)


async def calculate_token_claimed_percentage(
    token_address: str,
    token_symbol: str,
    total_fees_sol: float,
    *,
    bags: BagsClient,
    resolver: WalletResolver,
    rpc: SolanaRpcClient,
) -> TokenClaimedData:
    """Estimate from each wallet's recent withdrawal transactions."""
    try:
        fee_share = await _fee_share(token_address, token_symbol, bags, resolver)
        if not fee_share.fee_share_wallets:
            logger.info("No fee-share wallets for %s", token_symbol)
            return _empty(token_address, token_symbol, total_fees_sol)

        total_calc = 0.0
        total_withdrawals = 0.0
        for wallet in fee_share.fee_share_wallets:
            analysis = await analyze_wallet_withdrawals(
                rpc,
                wallet.wallet_address,
                wallet.twitter_handle,
                token_address,
                token_symbol,
                wallet.royalty_percentage,
                total_fees_sol,
                CLAIMED_PERCENTAGE_TX_LIMIT,
            )
            total_calc += analysis.calculated_earnings
            total_withdrawals += analysis.total_withdrawals

        pct = total_withdrawals / total_calc * 100 if total_calc > 0 else 0.0
        return TokenClaimedData(
            token_address=token_address,
            token_symbol=token_symbol,
            total_fees_sol=total_fees_sol,
            total_calculated_earnings=total_calc,
            total_withdrawals=total_withdrawals,
            claimed_percentage=pct,
            remaining_sol=total_calc - total_withdrawals,
        )
    except Exception as exc:
        logger.exception("Claimed-percentage failed for %s", token_symbol)
        return _empty(token_address, token_symbol, total_fees_sol, str(exc) or type(exc).__name__)
