"""
Read-through resolution of twitter handles to fee-share wallets.

Order: wallet mapping store → Bags ``fee-share/wallet/twitter``.  A
successful Bags lookup is written back to the store.  With a positive
``max_age_seconds`` a mapping older than that is re-checked against Bags;
if Bags has nothing, the stale mapping is still returned.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .data_sources.bags import BagsClient
from .wallet_store import WalletMappingStore

logger = logging.getLogger(__name__)


class WalletResolver:
    def __init__(
        self,
        store: WalletMappingStore,
        bags: BagsClient,
        max_age_seconds: int = 0,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._bags = bags
        self._max_age = timedelta(seconds=max_age_seconds) if max_age_seconds > 0 else None
        self._now = now

    async def resolve(self, twitter_handle: str) -> Optional[str]:
        """Return the fee-share wallet for *twitter_handle*, or ``None``."""
        if not twitter_handle:
            return None

        stored = await self._store.get(twitter_handle)
        if stored is not None:
            if self._max_age is None or self._now() - stored.last_checked < self._max_age:
                logger.debug("Using stored wallet for @%s: %s", twitter_handle, stored.wallet_address)
                return stored.wallet_address
            logger.info("Stored wallet for @%s is stale – re-checking", twitter_handle)

        wallet = await self._bags.get_fee_share_wallet(twitter_handle)
        if wallet is None:
            return stored.wallet_address if stored is not None else None

        await self._store.upsert(twitter_handle, wallet)
        logger.info("Resolved @%s → %s", twitter_handle, wallet)
        return wallet
