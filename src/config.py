"""
Project configuration file for the Bagged Fees service.

This module centralises all user-modifiable settings such as API keys,
upstream endpoints, pacing and cache options.  You can edit these values
directly or set environment variables to override them.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_float(name: str, default: str, *, low: float = 0.0, high: float = 1.0) -> float:
    """Parse an env var as a float and validate it within [low, high]."""
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        value = float(default)
    if not (low <= value <= high):
        logger.warning("%s=%.4f is outside [%.1f, %.1f] – clamped", name, value, low, high)
        value = max(low, min(value, high))
    return value


def _parse_int(name: str, default: str, *, minimum: int = 1) -> int:
    """Parse an env var as an int and enforce a minimum."""
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        value = int(default)
    if value < minimum:
        logger.warning("%s=%d is below minimum %d – clamped", name, value, minimum)
        value = minimum
    return value


# ---------------------------------------------------------------------------
# Solana RPC
# ---------------------------------------------------------------------------
SOLANA_RPC_ENDPOINT: str = os.getenv(
    "SOLANA_RPC_ENDPOINT",
    "https://api.mainnet-beta.solana.com",
)

# ---------------------------------------------------------------------------
# Bags.fm
# ---------------------------------------------------------------------------
# Authenticated v2 API (fee-share wallet lookups)
BAGS_API_BASE_URL: str = os.getenv(
    "BAGS_API_BASE_URL",
    "https://public-api-v2.bags.fm/api/v1",
)
BAGS_API_KEY: str = os.getenv("BAGS_API_KEY", "")

# Unauthenticated endpoints (creators, leaderboard, lifetime fees, token find)
BAGS_PUBLIC_API_BASE_URL: str = os.getenv(
    "BAGS_PUBLIC_API_BASE_URL",
    "https://api2.bags.fm/api/v1",
)

# ---------------------------------------------------------------------------
# Bagscreener community mirror (served through a CORS proxy)
# ---------------------------------------------------------------------------
BAGSCREENER_URL: str = os.getenv(
    "BAGSCREENER_URL",
    "https://api.codetabs.com/v1/proxy?quest=https://www.bagscreener.app/api/tokens/cached",
)

# ---------------------------------------------------------------------------
# CoinGecko
# ---------------------------------------------------------------------------
COINGECKO_BASE_URL: str = os.getenv(
    "COINGECKO_BASE_URL",
    "https://api.coingecko.com/api/v3",
)

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT: int = _parse_int("REQUEST_TIMEOUT", "15", minimum=1)
# 1 = a single attempt; balance lookups are not retried by default
RPC_MAX_RETRIES: int = _parse_int("RPC_MAX_RETRIES", "1", minimum=1)
HTTP_MAX_RETRIES: int = _parse_int("HTTP_MAX_RETRIES", "2", minimum=1)
ANALYSIS_TIMEOUT_SECONDS: int = _parse_int("ANALYSIS_TIMEOUT_SECONDS", "280", minimum=5)
DEFAULT_MAX_TRANSACTIONS: int = _parse_int("DEFAULT_MAX_TRANSACTIONS", "500", minimum=1)
MAX_TRANSACTIONS_CAP: int = _parse_int("MAX_TRANSACTIONS_CAP", "2000", minimum=1)

# ---------------------------------------------------------------------------
# Upstream pacing (token buckets, requests per second)
# ---------------------------------------------------------------------------
RATE_BAGS_PER_SECOND: float = _parse_float("RATE_BAGS_PER_SECOND", "5", low=0.1, high=100.0)
RATE_RPC_PER_SECOND: float = _parse_float("RATE_RPC_PER_SECOND", "4", low=0.1, high=100.0)
RATE_BURST: int = _parse_int("RATE_BURST", "5", minimum=1)

# ---------------------------------------------------------------------------
# Cache / wallet mapping store
# ---------------------------------------------------------------------------
TOKEN_LIST_TTL_SECONDS: int = _parse_int("TOKEN_LIST_TTL_SECONDS", "300", minimum=1)
WALLET_STORE_BACKEND: str = os.getenv("WALLET_STORE_BACKEND", "sqlite")  # "memory" or "sqlite"
WALLET_STORE_SQLITE_PATH: str = os.getenv("WALLET_STORE_SQLITE_PATH", "data/wallets.db")
# 0 disables expiry: a stored mapping is trusted forever
WALLET_MAPPING_MAX_AGE_SECONDS: int = _parse_int(
    "WALLET_MAPPING_MAX_AGE_SECONDS", "0", minimum=0
)

# ---------------------------------------------------------------------------
# Withdrawal allocation
# ---------------------------------------------------------------------------
ALLOCATION_POLICY: str = os.getenv("ALLOCATION_POLICY", "smallest_first")

# ---------------------------------------------------------------------------
# Rate limiting (slowapi format, e.g. "10/minute")
# ---------------------------------------------------------------------------
RATE_LIMIT_ANALYSIS: str = os.getenv("RATE_LIMIT_ANALYSIS", "6/minute")
RATE_LIMIT_LIGHT: str = os.getenv("RATE_LIMIT_LIGHT", "30/minute")

# ---------------------------------------------------------------------------
# Sentry (error tracking)
# ---------------------------------------------------------------------------
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT: str = os.getenv("SENTRY_ENVIRONMENT", "production")
SENTRY_TRACES_SAMPLE_RATE: float = _parse_float(
    "SENTRY_TRACES_SAMPLE_RATE", "0.1", low=0.0, high=1.0
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# ---------------------------------------------------------------------------
# API server
# ---------------------------------------------------------------------------
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = _parse_int("API_PORT", "8000", minimum=1)
CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
