"""
Waterfall allocation of a wallet's withdrawals across its token earnings.

On-chain data only tells us how much SOL left a fee wallet in total, not
which token's fees it was.  ``estimate_withdrawn`` infers the total from
the current balance and ``allocate`` spreads it over the wallet's
per-token earnings according to an allocation policy.

The default policy is smallest-first: small reward pools are assumed to
be cleared before large ones.  Example with earnings [40, 10, 15, 15]
and 32 SOL withdrawn::

    10 → 10 (100 %), 15 → 15 (100 %), 15 → 7 (46.7 %), 40 → 0 (0 %)
"""

from __future__ import annotations

import logging
import math
from typing import Protocol

from .data_sources.solana_rpc import SolanaRpcClient
from .models import CreatorTokenEarning, TokenEarning, WaterfallClaimResult

logger = logging.getLogger(__name__)


def estimate_withdrawn(calculated_earnings: float, current_balance: float) -> float:
    """Treat the wallet as fee-dedicated: whatever is not held was withdrawn."""
    if calculated_earnings <= 0:
        return 0.0
    return max(0.0, calculated_earnings - current_balance)


def _claimed_percentage(claimed: float, earnings: float) -> float:
    return claimed / earnings * 100 if earnings > 0 else 0.0


# ---------------------------------------------------------------------------
# Allocation policies
# ---------------------------------------------------------------------------

class AllocationPolicy(Protocol):
    name: str

    def split(self, total_withdrawn: float, earnings: list[TokenEarning]) -> list[tuple[TokenEarning, float]]:
        """Return ``(earning, claimed)`` pairs in allocation order."""
        ...


def _fill_in_order(total_withdrawn: float, ordered: list[TokenEarning]) -> list[tuple[TokenEarning, float]]:
    remaining = total_withdrawn
    out: list[tuple[TokenEarning, float]] = []
    for earning in ordered:
        if remaining <= 0:
            out.append((earning, 0.0))
            continue
        claimed = min(remaining, earning.calculated_earnings)
        remaining -= claimed
        out.append((earning, claimed))
    return out


class SmallestFirstPolicy:
    name = "smallest_first"

    def split(self, total_withdrawn: float, earnings: list[TokenEarning]) -> list[tuple[TokenEarning, float]]:
        ordered = sorted(earnings, key=lambda e: e.calculated_earnings)
        return _fill_in_order(total_withdrawn, ordered)


class LargestFirstPolicy:
    name = "largest_first"

    def split(self, total_withdrawn: float, earnings: list[TokenEarning]) -> list[tuple[TokenEarning, float]]:
        ordered = sorted(earnings, key=lambda e: e.calculated_earnings, reverse=True)
        return _fill_in_order(total_withdrawn, ordered)


class ProRataPolicy:
    """Every token claims the same fraction of its earnings."""

    name = "pro_rata"

    def split(self, total_withdrawn: float, earnings: list[TokenEarning]) -> list[tuple[TokenEarning, float]]:
        total = sum(e.calculated_earnings for e in earnings)
        if total <= 0:
            return [(e, 0.0) for e in earnings]
        fraction = min(total_withdrawn, total) / total
        return [(e, e.calculated_earnings * fraction) for e in earnings]


SMALLEST_FIRST = SmallestFirstPolicy()

_POLICIES: dict[str, AllocationPolicy] = {
    p.name: p for p in (SMALLEST_FIRST, LargestFirstPolicy(), ProRataPolicy())
}


def get_policy(name: str) -> AllocationPolicy:
    """Look up a policy by its config name (``ALLOCATION_POLICY``)."""
    try:
        return _POLICIES[name.strip().lower().replace("-", "_")]
    except KeyError:
        raise ValueError(
            f"Unknown allocation policy {name!r}; expected one of {sorted(_POLICIES)}"
        ) from None


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------

def allocate(
    total_withdrawn: float,
    earnings: list[TokenEarning],
    policy: AllocationPolicy | None = None,
    *,
    wallet_address: str = "",
    twitter_handle: str = "",
) -> list[CreatorTokenEarning]:
    """Distribute *total_withdrawn* over *earnings*.

    Returns one entry per earning, in allocation order.  Each claimed
    amount lies in ``[0, calculated_earnings]`` and the claimed amounts
    sum to ``min(total_withdrawn, sum(earnings))``.

    Raises ``ValueError`` on negative or non-finite inputs.
    """
    if not math.isfinite(total_withdrawn) or total_withdrawn < 0:
        raise ValueError(f"total_withdrawn must be a non-negative number, got {total_withdrawn!r}")
    for earning in earnings:
        if not math.isfinite(earning.calculated_earnings) or earning.calculated_earnings < 0:
            raise ValueError(
                f"negative or non-finite earnings for {earning.token_address}: "
                f"{earning.calculated_earnings!r}"
            )

    policy = policy or SMALLEST_FIRST
    return [
        CreatorTokenEarning(
            token_address=earning.token_address,
            token_symbol=earning.token_symbol,
            wallet_address=wallet_address,
            twitter_handle=twitter_handle,
            calculated_earnings=earning.calculated_earnings,
            claimed_amount=claimed,
            claimed_percentage=_claimed_percentage(claimed, earning.calculated_earnings),
        )
        for earning, claimed in policy.split(total_withdrawn, earnings)
    ]


async def calculate_waterfall_claims(
    wallet_address: str,
    twitter_handle: str,
    earnings: list[TokenEarning],
    rpc: SolanaRpcClient,
    policy: AllocationPolicy | None = None,
) -> WaterfallClaimResult:
    """Balance lookup → withdrawn estimate → allocation, for one wallet."""
    balance = await rpc.get_balance(wallet_address)
    total_calculated = sum(e.calculated_earnings for e in earnings)
    withdrawn = estimate_withdrawn(total_calculated, balance.balance_sol)
    tokens = allocate(
        withdrawn, earnings, policy,
        wallet_address=wallet_address, twitter_handle=twitter_handle,
    )

    logger.info(
        "Waterfall @%s: earned %.4f, balance %.4f%s, withdrawn %.4f across %d token(s)",
        twitter_handle, total_calculated, balance.balance_sol,
        "" if balance.ok else " (unknown)", withdrawn, len(tokens),
    )
    return WaterfallClaimResult(
        wallet_address=wallet_address,
        twitter_handle=twitter_handle,
        total_calculated_earnings=total_calculated,
        total_withdrawn=withdrawn,
        current_balance=balance.balance_sol,
        balance_known=balance.ok,
        tokens=tokens,
    )
