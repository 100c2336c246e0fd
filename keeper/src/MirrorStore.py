"""MirrorStore: Abstract base class for the settled-wager mirror.

The mirror is a query-friendly, best-effort copy of settled wagers for the
leaderboard and stats pages. It is never a source of truth. Every store
upserts by ``chain_bet_id`` so re-syncing a round cannot create duplicate
rows and concurrent identical upserts commute.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

MIRROR_TABLE = "leaderboard_bets"


class MirrorStoreError(Exception):
    """Raised when the mirror store cannot be read or written."""

    pass


@dataclass(frozen=True)
class MirrorRecord:
    """A settled wager plus its round's prices.

    :ivar chain_bet_id: Ledger-assigned bet id (unique key).
    :ivar round_id: Round the bet was placed in.
    :ivar wallet_address: Lower-cased bettor address.
    :ivar direction: "up" or "down".
    :ivar amount: Stake in whole tokens.
    :ivar result: "win", "loss" or "pending", as recorded by the ledger.
    :ivar payout: Payout in whole tokens.
    :ivar placed_at: When the bet was placed (UTC).
    :ivar settled_at: When the round was settled (UTC).
    :ivar start_price: Round start price in USD.
    :ivar end_price: Round end price in USD.
    """

    chain_bet_id: int
    round_id: int
    wallet_address: str
    direction: str
    amount: Decimal
    result: str
    payout: Decimal
    placed_at: datetime
    settled_at: datetime
    start_price: Decimal
    end_price: Decimal

    def to_row(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible row.

        Decimals are sent as strings to avoid float rounding.
        """
        return {
            "chain_bet_id": self.chain_bet_id,
            "round_id": self.round_id,
            "wallet_address": self.wallet_address,
            "direction": self.direction,
            "amount": str(self.amount),
            "result": self.result,
            "payout": str(self.payout),
            "placed_at": _to_iso(self.placed_at),
            "settled_at": _to_iso(self.settled_at),
            "start_price": str(self.start_price),
            "end_price": str(self.end_price),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> MirrorRecord:
        """Parse a row produced by ``to_row`` (or read back from a store)."""
        return cls(
            chain_bet_id=int(row["chain_bet_id"]),
            round_id=int(row["round_id"]),
            wallet_address=str(row["wallet_address"]),
            direction=str(row["direction"]),
            amount=Decimal(str(row["amount"])),
            result=str(row["result"]),
            payout=Decimal(str(row["payout"])),
            placed_at=_from_iso(row["placed_at"]),
            settled_at=_from_iso(row["settled_at"]),
            start_price=Decimal(str(row["start_price"])),
            end_price=Decimal(str(row["end_price"])),
        )


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MirrorStore(ABC):
    """Interface for stores that hold mirror records."""

    @abstractmethod
    async def upsert_records(self, records: Sequence[MirrorRecord]) -> int:
        """Insert or overwrite records keyed by ``chain_bet_id``.

        The batch is applied atomically.

        :param records: Records to upsert.
        :returns: Number of records written.
        :raises MirrorStoreError: If the store cannot be written.
        """
        pass

    @abstractmethod
    async def get_records(self, round_id: int | None = None) -> list[MirrorRecord]:
        """Read records, optionally for a single round, ordered by bet id.

        :param round_id: Optional round filter.
        :returns: Matching records.
        :raises MirrorStoreError: If the store cannot be read.
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        pass
