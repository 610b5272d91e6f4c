"""
Singleton client management for the Bagged Fees service.

Provides lazy-initialised clients for Bags, Bagscreener, CoinGecko,
Jupiter and Solana RPC, the wallet mapping store, and the components
built from them (resolver, catalog, aggregator).

``init_clients`` / ``close_clients`` should be called at app startup/shutdown.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..aggregator import FeeAttributionAggregator
from ..cache import TTLCache
from ..data_sources.bags import BagsClient
from ..data_sources.bagscreener import BagscreenerClient
from ..data_sources.coingecko import CoinGeckoClient
from ..data_sources.jupiter import JupiterClient
from ..data_sources.solana_rpc import SolanaRpcClient
from ..rate_limit import TokenBucket, register
from ..token_catalog import TokenCatalog
from ..wallet_lookup import WalletResolver
from ..wallet_store import InMemoryWalletStore, SQLiteWalletStore, WalletMappingStore
from ..waterfall import AllocationPolicy, get_policy
from config import (
    ALLOCATION_POLICY,
    BAGS_API_BASE_URL,
    BAGS_API_KEY,
    BAGS_PUBLIC_API_BASE_URL,
    BAGSCREENER_URL,
    COINGECKO_BASE_URL,
    HTTP_MAX_RETRIES,
    RATE_BAGS_PER_SECOND,
    RATE_BURST,
    RATE_RPC_PER_SECOND,
    REQUEST_TIMEOUT,
    RPC_MAX_RETRIES,
    SOLANA_RPC_ENDPOINT,
    TOKEN_LIST_TTL_SECONDS,
    WALLET_MAPPING_MAX_AGE_SECONDS,
    WALLET_STORE_BACKEND,
    WALLET_STORE_SQLITE_PATH,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singletons (created once, reused)
# ---------------------------------------------------------------------------
_bags_client: Optional[BagsClient] = None
_rpc_client: Optional[SolanaRpcClient] = None
_bagscreener_client: Optional[BagscreenerClient] = None
_coingecko_client: Optional[CoinGeckoClient] = None
_jup_client: Optional[JupiterClient] = None
_wallet_store: Optional[WalletMappingStore] = None

# Token-list cache (Bagscreener mirror and leaderboard fallback)
cache = TTLCache(default_ttl=TOKEN_LIST_TTL_SECONDS)

# Token buckets – one per upstream, registered for health reporting
rl_bags: TokenBucket = register(
    TokenBucket("bags", rate=RATE_BAGS_PER_SECOND, burst=RATE_BURST)
)
rl_solana_rpc: TokenBucket = register(
    TokenBucket("solana_rpc", rate=RATE_RPC_PER_SECOND, burst=RATE_BURST)
)
rl_bagscreener: TokenBucket = register(TokenBucket("bagscreener", rate=1, burst=2))
rl_coingecko: TokenBucket = register(TokenBucket("coingecko", rate=1, burst=2))
rl_jupiter: TokenBucket = register(
    TokenBucket("jupiter", rate=RATE_BAGS_PER_SECOND, burst=RATE_BURST)
)


def get_bags_client() -> BagsClient:
    global _bags_client
    if _bags_client is None:
        _bags_client = BagsClient(
            public_base_url=BAGS_PUBLIC_API_BASE_URL,
            api_base_url=BAGS_API_BASE_URL,
            api_key=BAGS_API_KEY,
            timeout=REQUEST_TIMEOUT,
            max_retries=HTTP_MAX_RETRIES,
            limiter=rl_bags,
        )
    return _bags_client


def get_rpc_client() -> SolanaRpcClient:
    global _rpc_client
    if _rpc_client is None:
        _rpc_client = SolanaRpcClient(
            endpoint=SOLANA_RPC_ENDPOINT,
            timeout=REQUEST_TIMEOUT,
            max_retries=RPC_MAX_RETRIES,
            limiter=rl_solana_rpc,
        )
    return _rpc_client


def get_bagscreener_client() -> BagscreenerClient:
    global _bagscreener_client
    if _bagscreener_client is None:
        _bagscreener_client = BagscreenerClient(
            url=BAGSCREENER_URL,
            cache=cache,
            timeout=REQUEST_TIMEOUT,
            max_retries=HTTP_MAX_RETRIES,
            limiter=rl_bagscreener,
        )
    return _bagscreener_client


def get_coingecko_client() -> CoinGeckoClient:
    global _coingecko_client
    if _coingecko_client is None:
        _coingecko_client = CoinGeckoClient(
            base_url=COINGECKO_BASE_URL,
            timeout=REQUEST_TIMEOUT,
            max_retries=HTTP_MAX_RETRIES,
            limiter=rl_coingecko,
        )
    return _coingecko_client


def get_jup_client() -> JupiterClient:
    global _jup_client
    if _jup_client is None:
        _jup_client = JupiterClient(timeout=REQUEST_TIMEOUT, limiter=rl_jupiter)
    return _jup_client


def get_wallet_store() -> WalletMappingStore:
    global _wallet_store
    if _wallet_store is None:
        if WALLET_STORE_BACKEND == "memory":
            _wallet_store = InMemoryWalletStore()
        else:
            _wallet_store = SQLiteWalletStore(db_path=WALLET_STORE_SQLITE_PATH)
    return _wallet_store


def get_policy_from_config() -> AllocationPolicy:
    return get_policy(ALLOCATION_POLICY)


def get_resolver() -> WalletResolver:
    return WalletResolver(
        store=get_wallet_store(),
        bags=get_bags_client(),
        max_age_seconds=WALLET_MAPPING_MAX_AGE_SECONDS,
    )


def get_catalog() -> TokenCatalog:
    return TokenCatalog(
        bagscreener=get_bagscreener_client(),
        bags=get_bags_client(),
        coingecko=get_coingecko_client(),
        jupiter=get_jup_client(),
        cache=cache,
    )


def get_aggregator() -> FeeAttributionAggregator:
    """Fresh aggregator wired to the shared clients."""
    return FeeAttributionAggregator(
        catalog=get_catalog(),
        bags=get_bags_client(),
        resolver=get_resolver(),
        rpc=get_rpc_client(),
        policy=get_policy_from_config(),
    )


async def init_clients() -> None:
    """Eagerly create the singletons (called at startup)."""
    get_bags_client()
    get_rpc_client()
    get_bagscreener_client()
    get_coingecko_client()
    get_jup_client()
    get_wallet_store()
    # Fail fast on a misconfigured ALLOCATION_POLICY
    get_policy_from_config()


async def close_clients() -> None:
    """Close singleton clients gracefully (called at shutdown)."""
    global _bags_client, _rpc_client, _bagscreener_client, _coingecko_client
    global _jup_client, _wallet_store
    if _bags_client is not None:
        await _bags_client.close()
        _bags_client = None
    if _rpc_client is not None:
        await _rpc_client.close()
        _rpc_client = None
    if _bagscreener_client is not None:
        await _bagscreener_client.close()
        _bagscreener_client = None
    if _coingecko_client is not None:
        await _coingecko_client.close()
        _coingecko_client = None
    if _jup_client is not None:
        await _jup_client.close()
        _jup_client = None
    if _wallet_store is not None:
        await _wallet_store.close()
        _wallet_store = None
