"""
Persistent twitter handle → fee-share wallet mappings.

Two backends share one small async interface (``get`` / ``upsert`` /
``close``):

1. **In-memory**: per-process dict, used by tests and ``memory`` mode.
2. **SQLite** (default): survives restarts; table ``wallet_mappings``
   keyed by the lower-cased twitter username.

Handles are normalised to lower case on both read and write.  Storage
failures are logged and treated as a miss, so a broken database only
costs an extra Bags lookup.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import aiosqlite

from .models import WalletMapping

logger = logging.getLogger(__name__)


def _normalise(handle: str) -> str:
    return handle.strip().lstrip("@").lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WalletMappingStore(Protocol):
    async def get(self, twitter_handle: str) -> Optional[WalletMapping]: ...

    async def upsert(self, twitter_handle: str, wallet_address: str) -> None: ...

    async def close(self) -> None: ...


class InMemoryWalletStore:
    """Dict-backed store.  Not shared across processes."""

    def __init__(self) -> None:
        self._rows: dict[str, WalletMapping] = {}

    async def get(self, twitter_handle: str) -> Optional[WalletMapping]:
        return self._rows.get(_normalise(twitter_handle))

    async def upsert(self, twitter_handle: str, wallet_address: str) -> None:
        key = _normalise(twitter_handle)
        now = _utcnow()
        existing = self._rows.get(key)
        self._rows[key] = WalletMapping(
            twitter_handle=key,
            wallet_address=wallet_address,
            created_at=existing.created_at if existing else now,
            last_checked=now,
        )

    async def close(self) -> None:
        self._rows.clear()

    def __len__(self) -> int:
        return len(self._rows)


class SQLiteWalletStore:
    """Async SQLite-backed wallet mapping store.

    Uses a persistent connection created lazily on first access.
    """

    def __init__(self, db_path: str = "data/wallets.db") -> None:
        self._db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        if self._db_path != ":memory:":
            await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS wallet_mappings (
                twitter_username TEXT PRIMARY KEY,
                wallet_address   TEXT NOT NULL,
                created_at       TEXT NOT NULL,
                last_checked     TEXT NOT NULL
            )
            """
        )
        await self._conn.commit()
        return self._conn

    async def get(self, twitter_handle: str) -> Optional[WalletMapping]:
        key = _normalise(twitter_handle)
        try:
            db = await self._get_conn()
            cursor = await db.execute(
                "SELECT wallet_address, created_at, last_checked "
                "FROM wallet_mappings WHERE twitter_username = ?",
                (key,),
            )
            row: Any = await cursor.fetchone()
        except aiosqlite.Error:
            logger.warning("Wallet store read failed for @%s", key, exc_info=True)
            return None
        if row is None:
            return None
        wallet, created_at, last_checked = row
        return WalletMapping(
            twitter_handle=key,
            wallet_address=wallet,
            created_at=datetime.fromisoformat(created_at),
            last_checked=datetime.fromisoformat(last_checked),
        )

    async def upsert(self, twitter_handle: str, wallet_address: str) -> None:
        key = _normalise(twitter_handle)
        now = _utcnow().isoformat()
        try:
            db = await self._get_conn()
            await db.execute(
                """
                INSERT INTO wallet_mappings
                    (twitter_username, wallet_address, created_at, last_checked)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(twitter_username) DO UPDATE SET
                    wallet_address = excluded.wallet_address,
                    last_checked   = excluded.last_checked
                """,
                (key, wallet_address, now, now),
            )
            await db.commit()
        except aiosqlite.Error:
            logger.warning("Wallet store upsert failed for @%s", key, exc_info=True)

    async def close(self) -> None:
        """Close the persistent connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
