"""
Centralized constants for the Bagged Fees service.

Import from this module rather than duplicating unit conversions and
protocol addresses across services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------
LAMPORTS_PER_SOL = 1_000_000_000
# Royalties are expressed in basis points: 10_000 bps = 100 %
BPS_DENOMINATOR = 10_000

# ---------------------------------------------------------------------------
# Meteora programs (Bags launches pool into Meteora; fee claims touch these)
# ---------------------------------------------------------------------------
METEORA_PROGRAMS: frozenset[str] = frozenset({
    "METAewgxyPbgwsseH8T16a39CQ5VyVxZi9zXiDPY18m",   # Meteora main
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo",   # Meteora DLMM
    "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB",  # Meteora pools
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",   # Whirlpool
})

# ---------------------------------------------------------------------------
# Transaction scanning
# ---------------------------------------------------------------------------
SIGNATURE_PAGE_SIZE = 500
TRANSACTION_BATCH_SIZE = 5
# Tokens inspected concurrently when tracking fee-share wallets catalog-wide
FEE_SHARE_BATCH_SIZE = 5
# Transactions scanned per wallet by the full claimed-percentage path
CLAIMED_PERCENTAGE_TX_LIMIT = 300

# Sentinel returned by the aggregators when no creator handle is known
UNKNOWN_HANDLE = "Unknown"


def lamports_to_sol(lamports: int | float) -> float:
    """Convert an integer lamport amount to SOL."""
    return lamports / LAMPORTS_PER_SOL


def bps_to_fraction(bps: int) -> float:
    """Convert basis points to a 0–1 fraction."""
    return bps / BPS_DENOMINATOR
