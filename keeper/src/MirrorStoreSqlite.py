"""MirrorStoreSqlite: Mirror store backed by a local SQLite file."""

from __future__ import annotations

import logging
import sqlite3
from typing import Sequence

import aiosqlite

from .MirrorStore import MIRROR_TABLE, MirrorRecord, MirrorStore, MirrorStoreError

logger = logging.getLogger(__name__)

SCHEMA = f"""
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS {MIRROR_TABLE} (
  chain_bet_id   INTEGER PRIMARY KEY,
  round_id       INTEGER NOT NULL,
  wallet_address TEXT NOT NULL,
  direction      TEXT NOT NULL,
  amount         TEXT NOT NULL,
  result         TEXT NOT NULL,
  payout         TEXT NOT NULL,
  placed_at      TEXT NOT NULL,
  settled_at     TEXT NOT NULL,
  start_price    TEXT NOT NULL,
  end_price      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_{MIRROR_TABLE}_round ON {MIRROR_TABLE}(round_id);
CREATE INDEX IF NOT EXISTS idx_{MIRROR_TABLE}_wallet ON {MIRROR_TABLE}(wallet_address);
"""

COLUMNS = (
    "chain_bet_id",
    "round_id",
    "wallet_address",
    "direction",
    "amount",
    "result",
    "payout",
    "placed_at",
    "settled_at",
    "start_price",
    "end_price",
)

# Ledger-derived columns are overwritten; settled_at keeps the first sync's
# value so a repeated sync leaves rows unchanged.
UPSERT_SQL = f"""
INSERT INTO {MIRROR_TABLE} ({", ".join(COLUMNS)})
VALUES ({", ".join(f":{c}" for c in COLUMNS)})
ON CONFLICT(chain_bet_id) DO UPDATE SET
  round_id       = excluded.round_id,
  wallet_address = excluded.wallet_address,
  direction      = excluded.direction,
  amount         = excluded.amount,
  result         = excluded.result,
  payout         = excluded.payout,
  placed_at      = excluded.placed_at,
  start_price    = excluded.start_price,
  end_price      = excluded.end_price
"""


class SqliteMirrorStore(MirrorStore):
    """Mirror store in a SQLite database file.

    A connection is opened per operation, so overlapping invocations can
    share the file; SQLite serializes the writes.

    :ivar path: Database file path.
    """

    def __init__(self, path: str) -> None:
        """Initialize the store.

        :param path: SQLite database file path.
        """
        self.path = path
        self._schema_ready = False

    async def _ensure_schema(self, db: aiosqlite.Connection) -> None:
        if not self._schema_ready:
            await db.executescript(SCHEMA)
            self._schema_ready = True

    async def upsert_records(self, records: Sequence[MirrorRecord]) -> int:
        if not records:
            return 0
        try:
            async with aiosqlite.connect(self.path) as db:
                await self._ensure_schema(db)
                await db.executemany(UPSERT_SQL, [r.to_row() for r in records])
                await db.commit()
        except sqlite3.Error as e:
            raise MirrorStoreError(f"SQLite upsert into {self.path} failed: {e}") from e

        logger.debug(f"Upserted {len(records)} records into {self.path}")
        return len(records)

    async def get_records(self, round_id: int | None = None) -> list[MirrorRecord]:
        query = f"SELECT {', '.join(COLUMNS)} FROM {MIRROR_TABLE}"
        params: tuple = ()
        if round_id is not None:
            query += " WHERE round_id = ?"
            params = (round_id,)
        query += " ORDER BY chain_bet_id"

        try:
            async with aiosqlite.connect(self.path) as db:
                await self._ensure_schema(db)
                db.row_factory = aiosqlite.Row
                async with db.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise MirrorStoreError(f"SQLite read from {self.path} failed: {e}") from e

        return [MirrorRecord.from_row(dict(row)) for row in rows]
