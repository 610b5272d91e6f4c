"""Shared test fixtures for the Bagged Fees test suite."""

from __future__ import annotations

import sys
import os

# Ensure src/ is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest
from unittest.mock import AsyncMock, MagicMock

from bagged_fees.models import BalanceLookup, CatalogToken, Creator
from bagged_fees.wallet_store import InMemoryWalletStore

TOKEN_A = "AaaaAaaaAaaaAaaaAaaaAaaaAaaaAaaaAaaaAaaaBAGS"
TOKEN_B = "BbbbBbbbBbbbBbbbBbbbBbbbBbbbBbbbBbbbBbbbBAGS"
TOKEN_C = "CcccCcccCcccCcccCcccCcccCcccCcccCcccCcccBAGS"
WALLET_ALICE = "A1iceWa11etA1iceWa11etA1iceWa11etA1iceWa11"
WALLET_BOB = "BobWa11etBobWa11etBobWa11etBobWa11etBobWa11"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def wallet_store():
    return InMemoryWalletStore()


@pytest.fixture
def catalog_tokens():
    """Three catalog tokens with lifetime fees in SOL."""
    return [
        CatalogToken(token_address=TOKEN_A, token_symbol="AAA", lifetime_fees_sol=100.0),
        CatalogToken(token_address=TOKEN_B, token_symbol="BBB", lifetime_fees_sol=270.0),
        CatalogToken(token_address=TOKEN_C, token_symbol="CCC", lifetime_fees_sol=50.0),
    ]


@pytest.fixture
def creators_by_token():
    """Alice earns 10 % of A and B; Bob earns 50 % of C and 0 % of A."""
    return {
        TOKEN_A: [
            Creator(twitter_username="alice", royalty_bps=1000, is_creator=True),
            Creator(twitter_username="bob", royalty_bps=0),
        ],
        TOKEN_B: [Creator(twitter_username="Alice", royalty_bps=1000, is_creator=True)],
        TOKEN_C: [Creator(twitter_username="bob", royalty_bps=5000, is_creator=True)],
    }


@pytest.fixture
def handle_wallets():
    return {"alice": WALLET_ALICE, "bob": WALLET_BOB}


@pytest.fixture
def fake_bags(creators_by_token, handle_wallets):
    bags = MagicMock()
    bags.get_token_creators = AsyncMock(
        side_effect=lambda mint: list(creators_by_token.get(mint, []))
    )
    bags.get_fee_share_wallet = AsyncMock(
        side_effect=lambda handle: handle_wallets.get(handle.lower())
    )
    bags.get_token_info = AsyncMock(return_value=None)
    return bags


@pytest.fixture
def fake_catalog(catalog_tokens):
    catalog = MagicMock()
    catalog.get_tokens = AsyncMock(return_value=catalog_tokens)
    return catalog


def make_rpc(balances: dict[str, float], failing: tuple[str, ...] = ()):
    """Fake SolanaRpcClient whose get_balance reads from *balances*."""

    async def _get_balance(wallet: str) -> BalanceLookup:
        if wallet in failing:
            return BalanceLookup(wallet_address=wallet, balance_sol=0.0, ok=False)
        return BalanceLookup(wallet_address=wallet, balance_sol=balances.get(wallet, 0.0))

    rpc = MagicMock()
    rpc.get_balance = AsyncMock(side_effect=_get_balance)
    return rpc


@pytest.fixture
def sample_bagscreener_payload():
    return {
        "tokens": [
            {
                "token_address": TOKEN_A,
                "token_symbol": "AAA",
                "token_name": "Token A",
                "image_url": "https://example.com/a.png",
                "creator_twitter": "alice",
                "lifetime_fees_sol": "100.5",
                "fees_claimed_sol": "25.125",
                "market_cap_usd": "120000",
                "price_usd": "0.00012",
            },
            {
                "token_address": TOKEN_B,
                "token_symbol": "BBB",
                "token_name": "Token B",
                "lifetime_fees_sol": "0",
                "fees_claimed_sol": None,
                "market_cap_usd": "",
                "price_usd": "bad",
            },
            {"token_symbol": "NOADDR"},
        ],
        "cached": True,
        "cacheAge": 42,
    }
