"""
Bagged Fees package initializer.

Exposes the pure waterfall helpers for external usage.  The API, the
aggregator and the data-source clients should be imported explicitly
from their respective modules.
"""

from .waterfall import allocate, estimate_withdrawn, get_policy  # noqa: F401

__all__ = ["allocate", "estimate_withdrawn", "get_policy"]
