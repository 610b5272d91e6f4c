"""Tests for the quick and full claimed-percentage estimates."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from bagged_fees.claimed_percentage import (
    calculate_token_claimed_percentage,
    calculate_token_claimed_percentage_quick,
)
from bagged_fees.models import Creator, WalletAnalysis
from bagged_fees.wallet_lookup import WalletResolver

from conftest import TOKEN_A, TOKEN_C, WALLET_ALICE, WALLET_BOB, make_rpc


@pytest.fixture
def resolver(fake_bags, wallet_store):
    return WalletResolver(store=wallet_store, bags=fake_bags)


class TestQuick:

    @pytest.mark.asyncio
    async def test_balance_delta(self, fake_bags, resolver):
        # Bob holds 50 % of C: expected 25 of 50, still holds 10 → 15 withdrawn
        rpc = make_rpc({WALLET_BOB: 10.0})
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_C, "CCC", 50.0, bags=fake_bags, resolver=resolver, rpc=rpc
        )

        assert result.total_calculated_earnings == pytest.approx(25.0)
        assert result.total_withdrawals == pytest.approx(15.0)
        assert result.claimed_percentage == pytest.approx(60.0)
        assert result.remaining_sol == pytest.approx(10.0)
        assert result.balances_unknown == 0
        assert result.error is None

    @pytest.mark.asyncio
    async def test_balance_above_expected_is_zero_claimed(self, fake_bags, resolver):
        rpc = make_rpc({WALLET_BOB: 80.0})
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_C, "CCC", 50.0, bags=fake_bags, resolver=resolver, rpc=rpc
        )
        assert result.total_withdrawals == 0.0
        assert result.claimed_percentage == 0.0

    @pytest.mark.asyncio
    async def test_failed_balance_counted(self, fake_bags, resolver):
        rpc = make_rpc({}, failing=(WALLET_BOB,))
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_C, "CCC", 50.0, bags=fake_bags, resolver=resolver, rpc=rpc
        )
        assert result.balances_unknown == 1
        assert result.claimed_percentage == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_shared_wallet_balance_read_once(self, fake_bags, resolver):
        fake_bags.get_token_creators.side_effect = lambda mint: [
            Creator(twitter_username="alice", royalty_bps=1000),
            Creator(twitter_username="ALICE", royalty_bps=1000),
        ]
        rpc = make_rpc({WALLET_ALICE: 5.0})
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_A, "AAA", 100.0, bags=fake_bags, resolver=resolver, rpc=rpc
        )

        assert rpc.get_balance.await_count == 1
        assert result.total_calculated_earnings == pytest.approx(20.0)
        assert result.total_withdrawals == pytest.approx(15.0)

    @pytest.mark.asyncio
    async def test_no_wallets(self, fake_bags, resolver):
        fake_bags.get_token_creators.side_effect = lambda mint: []
        rpc = make_rpc({})
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_A, "AAA", 12.0, bags=fake_bags, resolver=resolver, rpc=rpc
        )

        assert result.claimed_percentage == 0.0
        assert result.remaining_sol == 12.0
        assert result.error is None
        rpc.get_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_reported(self, fake_bags, resolver):
        fake_bags.get_token_creators.side_effect = RuntimeError("bags down")
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_A, "AAA", 12.0, bags=fake_bags, resolver=resolver, rpc=make_rpc({})
        )
        assert result.error == "bags down"
        assert result.remaining_sol == 12.0
        assert result.claimed_percentage == 0.0

    @pytest.mark.asyncio
    async def test_serialised_aliases(self, fake_bags, resolver):
        result = await calculate_token_claimed_percentage_quick(
            TOKEN_C, "CCC", 50.0, bags=fake_bags, resolver=resolver, rpc=make_rpc({WALLET_BOB: 10.0})
        )
        body = result.model_dump(by_alias=True)
        assert body["totalFeesSOL"] == 50.0
        assert body["remainingSOL"] == pytest.approx(10.0)
        assert body["claimedPercentage"] == pytest.approx(60.0)


def _analysis(wallet: str, handle: str, calculated: float, withdrawn: float) -> WalletAnalysis:
    return WalletAnalysis(
        wallet_address=wallet,
        twitter_handle=handle,
        token_address=TOKEN_C,
        token_symbol="CCC",
        royalty_percentage=50.0,
        calculated_earnings=calculated,
        total_withdrawals=withdrawn,
        remaining_balance=calculated - withdrawn,
    )


class TestFull:

    @pytest.mark.asyncio
    async def test_uses_transaction_history(self, fake_bags, resolver):
        analyze = AsyncMock(return_value=_analysis(WALLET_BOB, "bob", 25.0, 20.0))
        with patch("bagged_fees.claimed_percentage.analyze_wallet_withdrawals", analyze):
            result = await calculate_token_claimed_percentage(
                TOKEN_C, "CCC", 50.0, bags=fake_bags, resolver=resolver, rpc=make_rpc({})
            )

        assert result.total_calculated_earnings == pytest.approx(25.0)
        assert result.total_withdrawals == pytest.approx(20.0)
        assert result.claimed_percentage == pytest.approx(80.0)
        assert result.remaining_sol == pytest.approx(5.0)
        args = analyze.call_args.args
        assert args[1] == WALLET_BOB
        assert args[5] == 50.0
        assert args[7] == 300

    @pytest.mark.asyncio
    async def test_no_wallets(self, fake_bags, resolver):
        fake_bags.get_token_creators.side_effect = lambda mint: []
        analyze = AsyncMock()
        with patch("bagged_fees.claimed_percentage.analyze_wallet_withdrawals", analyze):
            result = await calculate_token_claimed_percentage(
                TOKEN_A, "AAA", 9.0, bags=fake_bags, resolver=resolver, rpc=make_rpc({})
            )
        assert result.remaining_sol == 9.0
        analyze.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_reported(self, fake_bags, resolver):
        analyze = AsyncMock(side_effect=TimeoutError())
        with patch("bagged_fees.claimed_percentage.analyze_wallet_withdrawals", analyze):
            result = await calculate_token_claimed_percentage(
                TOKEN_C, "CCC", 50.0, bags=fake_bags, resolver=resolver, rpc=make_rpc({})
            )
        assert result.error == "TimeoutError"
        assert result.remaining_sol == 50.0
