"""Tests for the Bagscreener mirror client (mocked HTTP, fake clock cache)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from bagged_fees.cache import TTLCache
from bagged_fees.data_sources.bagscreener import BagscreenerClient

from conftest import TOKEN_A, TOKEN_B

_HTTP_GET = "bagged_fees.data_sources.bagscreener.async_http_get"


@pytest.fixture
def cache(fake_clock):
    return TTLCache(default_ttl=300, clock=fake_clock)


@pytest.fixture
def client(cache):
    return BagscreenerClient(url="https://mirror.example.com/tokens", cache=cache)


class TestGetTokens:

    @pytest.mark.asyncio
    async def test_parses_entries(self, client, sample_bagscreener_payload):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=sample_bagscreener_payload):
            tokens = await client.get_tokens()

        assert [t.token_address for t in tokens] == [TOKEN_A, TOKEN_B]
        a, b = tokens
        assert a.token_symbol == "AAA"
        assert a.lifetime_fees_sol == pytest.approx(100.5)
        assert a.claimed_fees_sol == pytest.approx(25.125)
        assert a.market_cap_usd == 120000.0
        assert b.lifetime_fees_sol == 0.0
        assert b.claimed_fees_sol is None
        assert b.price_usd is None
        assert b.market_cap_usd is None

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, client, fake_clock, sample_bagscreener_payload):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=sample_bagscreener_payload) as get:
            await client.get_tokens()
            fake_clock.advance(120)
            await client.get_tokens()
            assert get.await_count == 1

            fake_clock.advance(300)
            await client.get_tokens()
            assert get.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, {"tokens": "nope"}, ["unexpected"]])
    async def test_unavailable(self, client, cache, payload):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=payload):
            assert await client.get_tokens() is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_negative_fees_clamped(self, client):
        payload = {"tokens": [{"token_address": TOKEN_A, "lifetime_fees_sol": "-3"}]}
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=payload):
            tokens = await client.get_tokens()
        assert tokens[0].lifetime_fees_sol == 0.0


class TestGetTokenClaimedFees:

    @pytest.mark.asyncio
    async def test_percentage(self, client, sample_bagscreener_payload):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=sample_bagscreener_payload):
            fees = await client.get_token_claimed_fees(TOKEN_A.lower())

        assert fees.lifetime_fees == pytest.approx(100.5)
        assert fees.claimed_fees == pytest.approx(25.125)
        assert fees.claimed_percentage == pytest.approx(25.0)

    @pytest.mark.asyncio
    async def test_zero_lifetime_fees(self, client, sample_bagscreener_payload):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=sample_bagscreener_payload):
            fees = await client.get_token_claimed_fees(TOKEN_B)
        assert fees.claimed_fees == 0.0
        assert fees.claimed_percentage == 0.0

    @pytest.mark.asyncio
    async def test_capped_at_100(self, client):
        payload = {"tokens": [{
            "token_address": TOKEN_A, "lifetime_fees_sol": 10, "fees_claimed_sol": 12,
        }]}
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=payload):
            fees = await client.get_token_claimed_fees(TOKEN_A)
        assert fees.claimed_percentage == 100.0

    @pytest.mark.asyncio
    async def test_not_found(self, client, sample_bagscreener_payload):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=sample_bagscreener_payload):
            assert await client.get_token_claimed_fees("MissingToken") is None

    @pytest.mark.asyncio
    async def test_mirror_down(self, client):
        with patch(_HTTP_GET, new_callable=AsyncMock, return_value=None):
            assert await client.get_token_claimed_fees(TOKEN_A) is None
