"""
Transaction-history withdrawal analysis for fee-share wallets.

The expensive estimation path: instead of the balance-delta heuristic it
pages through a wallet's signatures, fetches each transaction and sums
every negative SOL balance change of the wallet as a withdrawal.

Pipeline per wallet
-------------------
1. Page ``getSignaturesForAddress`` (≤ 500 per page) up to
   *max_transactions* signatures.
2. Fetch transactions in batches of 5, concurrently within a batch.
3. Keep transactions where the wallet's lamport balance dropped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .constants import (
    METEORA_PROGRAMS,
    SIGNATURE_PAGE_SIZE,
    TRANSACTION_BATCH_SIZE,
    lamports_to_sol,
)
from .data_sources.solana_rpc import SolanaRpcClient
from .models import SolTransaction, TokenFeeAnalysis, TokenFeeShareData, WalletAnalysis

logger = logging.getLogger(__name__)

_SYSTEM_PROGRAM = "11111111111111111111111111111111"


def _account_keys(tx: dict[str, Any]) -> list[str]:
    keys = ((tx.get("transaction") or {}).get("message") or {}).get("accountKeys") or []
    return [k if isinstance(k, str) else (k or {}).get("pubkey", "") for k in keys]


def _lamport_delta(tx: dict[str, Any], wallet: str) -> Optional[int]:
    """Post minus pre lamports of *wallet* in *tx*, or ``None`` if absent."""
    meta = tx.get("meta") or {}
    pre, post = meta.get("preBalances"), meta.get("postBalances")
    if not pre or not post:
        return None
    try:
        idx = _account_keys(tx).index(wallet)
        return int(post[idx]) - int(pre[idx])
    except (ValueError, IndexError, TypeError):
        return None


def sol_withdrawal_from_transaction(tx: dict[str, Any], wallet: str) -> float:
    """SOL that left *wallet* in *tx*; 0 when the balance did not drop."""
    delta = _lamport_delta(tx, wallet)
    if delta is None or delta >= 0:
        return 0.0
    return lamports_to_sol(-delta)


def _invoked_programs(tx: dict[str, Any]) -> list[str]:
    keys = _account_keys(tx)
    instructions = ((tx.get("transaction") or {}).get("message") or {}).get("instructions") or []
    programs: list[str] = []
    for ix in instructions:
        idx = ix.get("programIdIndex") if isinstance(ix, dict) else None
        if isinstance(idx, int) and 0 <= idx < len(keys):
            programs.append(keys[idx])
    return programs


def _meteora_program(tx: dict[str, Any], programs: list[str]) -> Optional[str]:
    for program in programs:
        if program in METEORA_PROGRAMS:
            return program
    logs = " ".join((tx.get("meta") or {}).get("logMessages") or [])
    for program in METEORA_PROGRAMS:
        if program in logs:
            return program
    return None


def _to_sol_transaction(sig_info: dict[str, Any], tx: dict[str, Any], wallet: str) -> Optional[SolTransaction]:
    delta = _lamport_delta(tx, wallet)
    if delta is None or delta >= 0:
        return None
    block_time = sig_info.get("blockTime") or tx.get("blockTime")
    programs = _invoked_programs(tx)
    meteora = _meteora_program(tx, programs)
    external = [p for p in programs if p != _SYSTEM_PROGRAM]
    return SolTransaction(
        signature=sig_info["signature"],
        block_time=block_time,
        date=datetime.fromtimestamp(block_time, tz=timezone.utc) if block_time else None,
        type="withdrawal",
        amount=lamports_to_sol(-delta),
        amount_lamports=-delta,
        from_address=wallet,
        program_id=meteora or (external[0] if external else None),
        is_program_interaction=bool(external),
        is_meteora_interaction=meteora is not None,
    )


async def _collect_signatures(
    rpc: SolanaRpcClient, wallet: str, max_transactions: int
) -> list[dict[str, Any]]:
    signatures: list[dict[str, Any]] = []
    before: Optional[str] = None
    while len(signatures) < max_transactions:
        page_size = min(SIGNATURE_PAGE_SIZE, max_transactions - len(signatures))
        page = await rpc.get_signatures_for_address(wallet, limit=page_size, before=before)
        if not page:
            break
        signatures.extend(page)
        before = page[-1].get("signature")
        if len(page) < page_size or not before:
            break
    return signatures[:max_transactions]


async def analyze_wallet_withdrawals(
    rpc: SolanaRpcClient,
    wallet_address: str,
    twitter_handle: str,
    token_address: str,
    token_symbol: str,
    royalty_percentage: float,
    total_token_fees: float,
    max_transactions: int = 500,
) -> WalletAnalysis:
    """Sum every SOL withdrawal from *wallet_address* in its recent history.

    Transactions that fail to load are skipped; the result reflects the
    transactions that could be read.
    """
    calculated = total_token_fees * (royalty_percentage / 100)
    logger.info(
        "Analyzing withdrawals for @%s (%.2f%% share, expected %.4f SOL)",
        twitter_handle, royalty_percentage, calculated,
    )

    signatures = await _collect_signatures(rpc, wallet_address, max_transactions)
    logger.info("Processing %d transactions for @%s", len(signatures), twitter_handle)

    withdrawals: list[SolTransaction] = []
    for start in range(0, len(signatures), TRANSACTION_BATCH_SIZE):
        batch = [s for s in signatures[start:start + TRANSACTION_BATCH_SIZE] if s.get("signature")]
        results = await asyncio.gather(
            *[rpc.get_transaction(s["signature"]) for s in batch],
            return_exceptions=True,
        )
        for sig_info, tx in zip(batch, results):
            if isinstance(tx, BaseException):
                logger.warning("Transaction %s failed to load: %s", sig_info["signature"], tx)
                continue
            if not tx:
                continue
            parsed = _to_sol_transaction(sig_info, tx, wallet_address)
            if parsed is not None:
                withdrawals.append(parsed)

    withdrawals.sort(key=lambda t: t.block_time or 0, reverse=True)
    total = sum(t.amount for t in withdrawals)
    last = next((t.date for t in withdrawals if t.date is not None), None)

    logger.info(
        "@%s: %d withdrawals totalling %.4f SOL (remaining %.4f)",
        twitter_handle, len(withdrawals), total, calculated - total,
    )
    return WalletAnalysis(
        wallet_address=wallet_address,
        twitter_handle=twitter_handle,
        token_address=token_address,
        token_symbol=token_symbol,
        royalty_percentage=royalty_percentage,
        calculated_earnings=calculated,
        total_withdrawals=total,
        remaining_balance=calculated - total,
        withdrawal_count=len(withdrawals),
        withdrawal_transactions=withdrawals,
        last_withdrawal=last,
    )


async def analyze_token_fee_claims(
    rpc: SolanaRpcClient,
    fee_share: TokenFeeShareData,
    total_token_fees: float,
    max_transactions_per_wallet: int = 500,
) -> TokenFeeAnalysis:
    """Run :func:`analyze_wallet_withdrawals` for every fee-share wallet of a token."""
    analyses: list[WalletAnalysis] = []
    for wallet in fee_share.fee_share_wallets:
        analyses.append(await analyze_wallet_withdrawals(
            rpc,
            wallet.wallet_address,
            wallet.twitter_handle,
            fee_share.token_address,
            fee_share.token_symbol,
            wallet.royalty_percentage,
            total_token_fees,
            max_transactions_per_wallet,
        ))

    total_calc = sum(a.calculated_earnings for a in analyses)
    total_withdrawn = sum(a.total_withdrawals for a in analyses)
    return TokenFeeAnalysis(
        token_address=fee_share.token_address,
        token_symbol=fee_share.token_symbol,
        token_name=fee_share.token_name,
        total_fees_earned=total_token_fees,
        total_creators=len(analyses),
        total_calculated_earnings=total_calc,
        total_withdrawals_across_creators=total_withdrawn,
        total_remaining_across_creators=total_calc - total_withdrawn,
        creator_analyses=analyses,
    )
