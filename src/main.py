"""
Command line interface for the Bagged Fees service.

Usage::

    python src/main.py --wallet <WALLET>
    python src/main.py --token <TOKEN_MINT> --fees <TOTAL_FEES_SOL> [--symbol SYM]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import os

# Ensure ``src/`` is on the import path
sys.path.insert(0, os.path.dirname(__file__))

from bagged_fees.data_sources._clients import close_clients, get_aggregator
from bagged_fees.models import TokenWaterfallResult, WaterfallClaimResult

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)


def _print_creator(result: WaterfallClaimResult) -> None:
    print("=" * 60)
    print("  Bagged Fees – Creator Waterfall")
    print("=" * 60)
    print(f"  Wallet       : {result.wallet_address}")
    print(f"  Creator      : @{result.twitter_handle}")
    print(f"  Should earn  : {result.total_calculated_earnings:.4f} SOL")
    balance = f"{result.current_balance:.4f} SOL"
    print(f"  Balance      : {balance if result.balance_known else balance + ' (lookup failed)'}")
    print(f"  Withdrawn    : {result.total_withdrawn:.4f} SOL")
    print("-" * 60)
    if result.tokens:
        for t in result.tokens:
            print(
                f"    {t.token_symbol or t.token_address[:8]:12s} "
                f"{t.claimed_amount:>10.4f} / {t.calculated_earnings:<10.4f} SOL "
                f"({t.claimed_percentage:5.1f}%)"
            )
    else:
        print("  No royalty tokens found for this wallet.")
    print("=" * 60)


def _print_token(result: TokenWaterfallResult) -> None:
    print("=" * 60)
    print(f"  Bagged Fees – Token Waterfall: {result.token_symbol}")
    print("=" * 60)
    print(f"  Token        : {result.token_address}")
    print(f"  Total fees   : {result.total_fees_sol:.4f} SOL")
    print(f"  Creators     : {len(result.creators)}")
    print(f"  Claimed      : {result.total_claimed_amount:.4f} / "
          f"{result.total_calculated_earnings:.4f} SOL "
          f"({result.overall_claimed_percentage:.1f}%)")
    print("-" * 60)
    for c in result.creators:
        print(f"    @{c.twitter_handle:20s} {c.claimed_percentage:5.1f}% claimed")
    print("=" * 60)


async def _run(args: argparse.Namespace) -> None:
    """Async entry point."""
    aggregator = get_aggregator()
    try:
        if args.wallet:
            result = await aggregator.creator_waterfall(args.wallet)
        else:
            result = await aggregator.token_waterfall(args.token, args.symbol, args.fees)
    finally:
        await close_clients()

    if args.as_json:
        print(result.model_dump_json(indent=2, by_alias=True))
    elif isinstance(result, WaterfallClaimResult):
        _print_creator(result)
    else:
        _print_token(result)


def main() -> None:
    """Entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Estimate withdrawn Bags.fm creator fees with the waterfall heuristic"
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--wallet", help="Fee-share wallet to analyse across all its tokens")
    target.add_argument("--token", help="Token mint to analyse across all its creators")
    parser.add_argument("--fees", type=float, help="Total lifetime fees of --token, in SOL")
    parser.add_argument("--symbol", default="Unknown", help="Symbol of --token (display only)")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Output result as raw JSON",
    )
    args = parser.parse_args()
    if args.token and (args.fees is None or args.fees < 0):
        parser.error("--token requires a non-negative --fees value")
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
