"""Tests for the CoinGecko SOL price client."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from bagged_fees.data_sources.coingecko import CoinGeckoClient

_HTTP_GET = "bagged_fees.data_sources.coingecko.async_http_get"


@pytest.fixture
def client():
    return CoinGeckoClient(base_url="https://cg.example.com/api/v3/")


@pytest.mark.asyncio
async def test_sol_price(client):
    with patch(_HTTP_GET, new_callable=AsyncMock, return_value={"solana": {"usd": 142.5}}) as get:
        assert await client.get_sol_price() == 142.5

    assert get.call_args.args[1] == "https://cg.example.com/api/v3/simple/price"
    assert get.call_args.kwargs["params"] == {"ids": "solana", "vs_currencies": "usd"}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [None, {}, {"solana": {}}, {"solana": {"usd": "x"}}])
async def test_price_unavailable(client, payload):
    with patch(_HTTP_GET, new_callable=AsyncMock, return_value=payload):
        assert await client.get_sol_price() is None
