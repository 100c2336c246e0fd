"""LedgerTypes: Round and wager records as stored by the betting contract.

The contract returns structs as positional tuples; ``from_tuple`` maps them
onto these dataclasses in ABI field order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Sequence


class Direction(IntEnum):
    """Predicted (or settled) price direction, matching the contract enum."""

    NONE = 0
    UP = 1
    DOWN = 2


class BetResult(IntEnum):
    """Outcome of a single wager, matching the contract enum."""

    PENDING = 0
    WIN = 1
    LOSE = 2


class RoundState(Enum):
    """Lifecycle state derived from one ledger read. Never stored locally."""

    NO_ROUND = "no_round"
    ROUND_OPEN = "round_open"
    ROUND_EXPIRED_UNRESOLVED = "round_expired_unresolved"
    ROUND_RESOLVED = "round_resolved"


@dataclass(frozen=True)
class Round:
    """A single timed betting round.

    ``end_price`` and ``result`` are only meaningful once ``resolved`` is set.

    :ivar round_id: Ledger-assigned id, contiguous from 1.
    :ivar start_time: Unix timestamp the round started.
    :ivar end_time: Unix timestamp the round ends.
    :ivar start_price: Start price with 8 decimals.
    :ivar end_price: End price with 8 decimals.
    :ivar total_up_pool: Total stake on UP in token base units.
    :ivar total_down_pool: Total stake on DOWN in token base units.
    :ivar result: Settled direction.
    :ivar resolved: Whether the round has been settled.
    """

    round_id: int
    start_time: int
    end_time: int
    start_price: int
    end_price: int
    total_up_pool: int
    total_down_pool: int
    result: Direction
    resolved: bool

    @classmethod
    def from_tuple(cls, data: Sequence) -> Round:
        """Build a Round from the contract's ``Round`` struct tuple."""
        return cls(
            round_id=int(data[0]),
            start_time=int(data[1]),
            end_time=int(data[2]),
            start_price=int(data[3]),
            end_price=int(data[4]),
            total_up_pool=int(data[5]),
            total_down_pool=int(data[6]),
            result=Direction(int(data[7])),
            resolved=bool(data[8]),
        )


@dataclass(frozen=True)
class Wager:
    """A bet placed on a round.

    :ivar bet_id: Ledger-assigned unique bet id.
    :ivar round_id: Round the bet was placed in.
    :ivar user: Bettor address.
    :ivar direction: Chosen direction.
    :ivar amount: Stake in token base units.
    :ivar timestamp: Unix timestamp of placement.
    :ivar result: Outcome recorded by the ledger.
    :ivar payout: Payout in token base units.
    """

    bet_id: int
    round_id: int
    user: str
    direction: Direction
    amount: int
    timestamp: int
    result: BetResult
    payout: int

    @classmethod
    def from_tuple(cls, data: Sequence) -> Wager:
        """Build a Wager from the contract's ``Bet`` struct tuple."""
        return cls(
            bet_id=int(data[0]),
            round_id=int(data[1]),
            user=str(data[2]),
            direction=Direction(int(data[3])),
            amount=int(data[4]),
            timestamp=int(data[5]),
            result=BetResult(int(data[6])),
            payout=int(data[7]),
        )


@dataclass(frozen=True)
class TxResult:
    """A confirmed transaction.

    :ivar tx_hash: Transaction hash (0x-prefixed hex).
    :ivar block_number: Block the transaction was included in.
    """

    tx_hash: str
    block_number: int
