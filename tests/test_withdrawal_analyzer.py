"""Tests for the transaction-history withdrawal analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from bagged_fees.constants import LAMPORTS_PER_SOL
from bagged_fees.models import FeeShareWallet, TokenFeeShareData
from bagged_fees.withdrawal_analyzer import (
    _collect_signatures,
    analyze_token_fee_claims,
    analyze_wallet_withdrawals,
    sol_withdrawal_from_transaction,
)

from conftest import TOKEN_A, WALLET_ALICE, WALLET_BOB

_SYSTEM = "11111111111111111111111111111111"
_METEORA_DLMM = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
_OTHER = "Dest1nati0nDest1nati0nDest1nati0nDest1nati0"


def _tx(wallet: str, pre: int, post: int, *, block_time: int = 1_700_000_000,
        program: str = _SYSTEM, logs=None, keys_as_objects: bool = False):
    keys = [wallet, _OTHER, program]
    if keys_as_objects:
        keys = [{"pubkey": k, "signer": i == 0} for i, k in enumerate(keys)]
    return {
        "blockTime": block_time,
        "transaction": {
            "message": {"accountKeys": keys, "instructions": [{"programIdIndex": 2}]},
        },
        "meta": {
            "preBalances": [pre, 0, 1],
            "postBalances": [post, pre - post, 1],
            "logMessages": logs or [],
        },
    }


def _rpc(transactions: dict[str, dict], pages: list[list[dict]] | None = None):
    """Fake RPC serving signature *pages* in order and *transactions* by signature."""
    if pages is None:
        pages = [[
            {"signature": sig, "blockTime": tx.get("blockTime") if isinstance(tx, dict) else None}
            for sig, tx in transactions.items()
        ]]
    remaining = list(pages)

    async def _signatures(address, limit=1000, before=None):
        return remaining.pop(0) if remaining else []

    async def _transaction(signature):
        value = transactions.get(signature)
        if isinstance(value, Exception):
            raise value
        return value

    rpc = MagicMock()
    rpc.get_signatures_for_address = AsyncMock(side_effect=_signatures)
    rpc.get_transaction = AsyncMock(side_effect=_transaction)
    return rpc


class TestSolWithdrawalFromTransaction:

    def test_balance_drop(self):
        tx = _tx(WALLET_ALICE, 3 * LAMPORTS_PER_SOL, LAMPORTS_PER_SOL)
        assert sol_withdrawal_from_transaction(tx, WALLET_ALICE) == pytest.approx(2.0)

    def test_deposit_ignored(self):
        tx = _tx(WALLET_ALICE, LAMPORTS_PER_SOL, 2 * LAMPORTS_PER_SOL)
        assert sol_withdrawal_from_transaction(tx, WALLET_ALICE) == 0.0

    def test_parsed_account_keys(self):
        tx = _tx(WALLET_ALICE, 500, 200, keys_as_objects=True)
        assert sol_withdrawal_from_transaction(tx, WALLET_ALICE) == pytest.approx(300 / LAMPORTS_PER_SOL)

    def test_wallet_not_in_transaction(self):
        tx = _tx(WALLET_ALICE, 500, 200)
        assert sol_withdrawal_from_transaction(tx, WALLET_BOB) == 0.0

    def test_missing_meta(self):
        assert sol_withdrawal_from_transaction({"transaction": {}}, WALLET_ALICE) == 0.0


class TestCollectSignatures:

    @pytest.mark.asyncio
    async def test_pages_until_limit(self):
        pages = [
            [{"signature": f"a{i}"} for i in range(500)],
            [{"signature": f"b{i}"} for i in range(500)],
        ]
        rpc = _rpc({}, pages)

        sigs = await _collect_signatures(rpc, WALLET_ALICE, 700)
        assert len(sigs) == 700
        calls = rpc.get_signatures_for_address.call_args_list
        assert calls[0].kwargs == {"limit": 500, "before": None}
        assert calls[1].kwargs == {"limit": 200, "before": "a499"}

    @pytest.mark.asyncio
    async def test_short_page_stops(self):
        rpc = _rpc({}, [[{"signature": "s1"}, {"signature": "s2"}]])
        sigs = await _collect_signatures(rpc, WALLET_ALICE, 500)
        assert [s["signature"] for s in sigs] == ["s1", "s2"]
        assert rpc.get_signatures_for_address.await_count == 1


class TestAnalyzeWalletWithdrawals:

    @pytest.mark.asyncio
    async def test_sums_withdrawals_newest_first(self):
        transactions = {
            "old": _tx(WALLET_ALICE, 5 * LAMPORTS_PER_SOL, 4 * LAMPORTS_PER_SOL, block_time=100),
            "deposit": _tx(WALLET_ALICE, LAMPORTS_PER_SOL, 6 * LAMPORTS_PER_SOL, block_time=150),
            "new": _tx(
                WALLET_ALICE, 4 * LAMPORTS_PER_SOL, LAMPORTS_PER_SOL, block_time=200,
                program=_METEORA_DLMM,
            ),
        }
        rpc = _rpc(transactions)

        analysis = await analyze_wallet_withdrawals(
            rpc, WALLET_ALICE, "alice", TOKEN_A, "AAA", 10.0, 100.0
        )

        assert analysis.calculated_earnings == pytest.approx(10.0)
        assert analysis.total_withdrawals == pytest.approx(4.0)
        assert analysis.remaining_balance == pytest.approx(6.0)
        assert analysis.withdrawal_count == 2
        assert [t.signature for t in analysis.withdrawal_transactions] == ["new", "old"]
        assert analysis.last_withdrawal == datetime.fromtimestamp(200, tz=timezone.utc)

        newest = analysis.withdrawal_transactions[0]
        assert newest.type == "withdrawal"
        assert newest.amount_lamports == 3 * LAMPORTS_PER_SOL
        assert newest.is_meteora_interaction is True
        assert newest.program_id == _METEORA_DLMM
        oldest = analysis.withdrawal_transactions[1]
        assert oldest.is_program_interaction is False
        assert oldest.is_meteora_interaction is False

    @pytest.mark.asyncio
    async def test_meteora_detected_from_logs(self):
        tx = _tx(WALLET_ALICE, 10, 5, logs=[f"Program {_METEORA_DLMM} invoke [1]"])
        analysis = await analyze_wallet_withdrawals(
            _rpc({"s": tx}), WALLET_ALICE, "alice", TOKEN_A, "AAA", 10.0, 1.0
        )
        assert analysis.withdrawal_transactions[0].is_meteora_interaction is True

    @pytest.mark.asyncio
    async def test_failed_transactions_skipped(self):
        transactions = {
            "ok": _tx(WALLET_ALICE, 2 * LAMPORTS_PER_SOL, LAMPORTS_PER_SOL),
            "boom": RuntimeError("rpc exploded"),
            "missing": None,
        }
        analysis = await analyze_wallet_withdrawals(
            _rpc(transactions), WALLET_ALICE, "alice", TOKEN_A, "AAA", 50.0, 10.0
        )
        assert analysis.withdrawal_count == 1
        assert analysis.total_withdrawals == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_fetches_in_batches(self):
        transactions = {
            f"s{i}": _tx(WALLET_ALICE, 10, 9, block_time=i + 1) for i in range(12)
        }
        rpc = _rpc(transactions)

        analysis = await analyze_wallet_withdrawals(
            rpc, WALLET_ALICE, "alice", TOKEN_A, "AAA", 10.0, 1.0
        )
        assert analysis.withdrawal_count == 12
        assert rpc.get_transaction.await_count == 12

    @pytest.mark.asyncio
    async def test_max_transactions_respected(self):
        transactions = {f"s{i}": _tx(WALLET_ALICE, 10, 9) for i in range(8)}
        rpc = _rpc(transactions)

        analysis = await analyze_wallet_withdrawals(
            rpc, WALLET_ALICE, "alice", TOKEN_A, "AAA", 10.0, 1.0, max_transactions=3
        )
        assert analysis.withdrawal_count == 3

    @pytest.mark.asyncio
    async def test_no_history(self):
        analysis = await analyze_wallet_withdrawals(
            _rpc({}), WALLET_ALICE, "alice", TOKEN_A, "AAA", 25.0, 8.0
        )
        assert analysis.total_withdrawals == 0.0
        assert analysis.remaining_balance == pytest.approx(2.0)
        assert analysis.last_withdrawal is None


class TestAnalyzeTokenFeeClaims:

    @pytest.mark.asyncio
    async def test_totals_across_creators(self):
        fee_share = TokenFeeShareData(
            token_address=TOKEN_A,
            token_symbol="AAA",
            token_name="Token A",
            fee_share_wallets=[
                FeeShareWallet(twitter_handle="alice", wallet_address=WALLET_ALICE,
                               token_address=TOKEN_A, royalty_bps=1000),
                FeeShareWallet(twitter_handle="bob", wallet_address=WALLET_BOB,
                               token_address=TOKEN_A, royalty_bps=3000),
            ],
        )
        transactions = {
            "a1": _tx(WALLET_ALICE, 5 * LAMPORTS_PER_SOL, 2 * LAMPORTS_PER_SOL),
            "b1": _tx(WALLET_BOB, 20 * LAMPORTS_PER_SOL, 10 * LAMPORTS_PER_SOL),
        }
        by_wallet = {WALLET_ALICE: [{"signature": "a1"}], WALLET_BOB: [{"signature": "b1"}]}

        rpc = _rpc(transactions)
        rpc.get_signatures_for_address = AsyncMock(
            side_effect=lambda address, limit=1000, before=None: [] if before else by_wallet[address]
        )

        analysis = await analyze_token_fee_claims(rpc, fee_share, 100.0)

        assert analysis.total_creators == 2
        assert analysis.total_fees_earned == 100.0
        assert analysis.total_calculated_earnings == pytest.approx(40.0)
        assert analysis.total_withdrawals_across_creators == pytest.approx(13.0)
        assert analysis.total_remaining_across_creators == pytest.approx(27.0)
        by_handle = {a.twitter_handle: a for a in analysis.creator_analyses}
        assert by_handle["alice"].royalty_percentage == 10.0
        assert by_handle["bob"].total_withdrawals == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_no_wallets(self):
        fee_share = TokenFeeShareData(token_address=TOKEN_A, token_symbol="AAA", token_name="A")
        analysis = await analyze_token_fee_claims(_rpc({}), fee_share, 50.0)
        assert analysis.total_creators == 0
        assert analysis.creator_analyses == []
