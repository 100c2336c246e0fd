"""RoundCoordinator: Keeps betting rounds moving on the ledger.

Each call to ``run_tick`` reads the ledger, derives the round state and
performs at most one compound action:

    NO_ROUND                  -> start a round
    ROUND_RESOLVED            -> start the next round, catch up the mirror
    ROUND_EXPIRED_UNRESOLVED  -> settle, then start the next round, mirror
    ROUND_OPEN                -> nothing

Nothing is remembered between ticks. Overlapping ticks are serialized by
the ledger itself: a write it rejects means another tick already advanced
the round, which ends this tick as a successful no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .Ledger import LedgerError, TransactionFailed, TransactionRejected
from .LedgerTypes import Round, RoundState
from .PhaseTracker import Phase, derive_local_phase
from .PriceResolver import PriceUnavailable
from .fixed_point import format_price

if TYPE_CHECKING:
    from .Ledger import Ledger
    from .MirrorSync import SettlementMirrorSync
    from .PriceResolver import PriceResolver, ResolvedPrice

logger = logging.getLogger(__name__)

ACTION_NONE = "none"
ACTION_START = "startRound"
ACTION_SETTLE = "settleRound"


def derive_round_state(round_id: int, round: Round | None, seconds_remaining: int) -> RoundState:
    """Derive the lifecycle state from one ledger read.

    :param round_id: Current round id (0 when no round exists).
    :param round: Current round, ignored when ``round_id`` is 0.
    :param seconds_remaining: Seconds until the round ends.
    """
    if round_id == 0 or round is None:
        return RoundState.NO_ROUND
    if round.resolved:
        return RoundState.ROUND_RESOLVED
    if seconds_remaining <= 0:
        return RoundState.ROUND_EXPIRED_UNRESOLVED
    return RoundState.ROUND_OPEN


@dataclass
class LedgerSnapshot:
    """What a tick observed on the ledger.

    :ivar round_id: Current round id.
    :ivar betting_open: Whether betting was open.
    :ivar seconds_remaining: Seconds until the round ends.
    :ivar round: Current round, None when no round exists.
    :ivar state: Derived lifecycle state.
    :ivar phase: Derived client-facing phase.
    """

    round_id: int
    betting_open: bool
    seconds_remaining: int
    round: Round | None
    state: RoundState
    phase: Phase

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_round_id": self.round_id,
            "is_betting_open": self.betting_open,
            "time_remaining": self.seconds_remaining,
            "resolved": bool(self.round and self.round.resolved),
            "start_price": self.round.start_price if self.round else 0,
            "state": self.state.value,
            "phase": self.phase.value,
        }


@dataclass
class TickResult:
    """Outcome of one tick.

    :ivar success: False if the tick ended in an error state.
    :ivar action: ACTION_NONE, ACTION_START or ACTION_SETTLE.
    :ivar tx_hash: Hash of the primary transaction of the action.
    :ivar start_tx_hash: Hash of the follow-up start after a settle.
    :ivar snapshot: Observed ledger state.
    :ivar price: Price the action used.
    :ivar synced: Mirror records written.
    :ivar error: Error description when ``success`` is False.
    """

    success: bool = True
    action: str = ACTION_NONE
    tx_hash: str = ""
    start_tx_hash: str = ""
    snapshot: LedgerSnapshot | None = None
    price: ResolvedPrice | None = None
    synced: int = 0
    error: str | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "action": self.action,
            "txHash": self.tx_hash,
            "startTxHash": self.start_tx_hash,
            "state": self.snapshot.to_dict() if self.snapshot else None,
            "price": self.price.price if self.price else None,
            "priceSource": self.price.source.value if self.price else None,
            "synced": self.synced,
        }
        if self.notes:
            data["notes"] = list(self.notes)
        if self.error:
            data["error"] = self.error
        return data


class RoundCoordinator:
    """Decides and executes one lifecycle step per tick.

    :ivar ledger: Authoritative ledger.
    :ivar resolver: Price resolver.
    :ivar mirror_sync: Optional settlement mirror sync.
    """

    def __init__(
        self,
        ledger: Ledger,
        resolver: PriceResolver,
        mirror_sync: SettlementMirrorSync | None = None,
    ) -> None:
        """Initialize the coordinator.

        :param ledger: Ledger to read and write.
        :param resolver: Resolves start and settlement prices.
        :param mirror_sync: Mirror sync to run after settlements (optional).
        """
        self.ledger = ledger
        self.resolver = resolver
        self.mirror_sync = mirror_sync

    def observe(self) -> LedgerSnapshot:
        """Read the current round state from the ledger.

        :raises LedgerError: If the ledger cannot be read.
        """
        round_id = self.ledger.current_round_id()
        betting_open = self.ledger.is_betting_open()
        seconds_remaining = self.ledger.seconds_remaining()
        round = self.ledger.get_current_round() if round_id > 0 else None
        state = derive_round_state(round_id, round, seconds_remaining)
        phase = derive_local_phase(seconds_remaining, self.ledger.betting_cutoff())

        logger.info(
            f"Round {round_id}: state={state.value}, betting_open={betting_open}, "
            f"remaining={seconds_remaining}s, resolved={bool(round and round.resolved)}, "
            f"start_price={format_price(round.start_price) if round else '-'}"
        )
        return LedgerSnapshot(
            round_id=round_id,
            betting_open=betting_open,
            seconds_remaining=seconds_remaining,
            round=round,
            state=state,
            phase=phase,
        )

    async def run_tick(self) -> TickResult:
        """Run one lifecycle tick.

        Never raises for price, ledger or mirror failures; they are
        reported in the returned TickResult.

        :returns: What the tick observed and did.
        """
        result = TickResult()
        try:
            result.snapshot = self.observe()
            await self._advance(result.snapshot, result)
        except PriceUnavailable as e:
            result.success = False
            result.error = f"Price unavailable: {e}"
            logger.warning(f"Skipping tick, no write attempted: {e}")
        except TransactionFailed as e:
            result.success = False
            result.error = str(e)
            logger.error(f"Tick failed during {e.action}: {e}")
        except LedgerError as e:
            result.success = False
            result.error = str(e)
            logger.error(f"Tick failed reading the ledger: {e}")
        return result

    async def _advance(self, snapshot: LedgerSnapshot, result: TickResult) -> None:
        if snapshot.state is RoundState.ROUND_OPEN:
            logger.info(
                f"Round {snapshot.round_id} is active with "
                f"{snapshot.seconds_remaining}s remaining. No action needed."
            )
            return

        round = snapshot.round
        if snapshot.state is RoundState.ROUND_EXPIRED_UNRESOLVED and round is not None:
            await self._settle_and_start(round, result)
            return

        price = await self.resolver.resolve_price()
        result.price = price

        if snapshot.state is RoundState.NO_ROUND or round is None:
            self._start(price, result)
            return

        # ROUND_RESOLVED: a previous tick settled but did not start.
        try:
            self._start(price, result)
        finally:
            await self._sync(round, round.end_price, result)

    async def _settle_and_start(self, round: Round, result: TickResult) -> None:
        primary = await self.resolver.resolve_price()
        price = await self.resolver.resolve_settlement_price(round.start_price, primary.price)
        result.price = price

        logger.info(f"Settling round {round.round_id} with price {price}")
        result.action = ACTION_SETTLE
        try:
            settle_tx = self.ledger.settle_round(round.round_id, price.price)
        except TransactionRejected as e:
            self._note_noop(result, f"Round {round.round_id} already settled elsewhere: {e}")
            return
        result.tx_hash = settle_tx.tx_hash

        # The settlement is confirmed from here on; mirror it whatever happens next.
        try:
            logger.info(f"Starting next round immediately with price {price}")
            start_tx = self._send_start(price.price, result)
            if start_tx is not None:
                result.start_tx_hash = start_tx
        finally:
            await self._sync(round, price.price, result)

    def _start(self, price: ResolvedPrice, result: TickResult) -> None:
        logger.info(f"Starting new round with price {price}")
        result.action = ACTION_START
        tx_hash = self._send_start(price.price, result)
        if tx_hash is not None:
            result.tx_hash = tx_hash

    def _send_start(self, start_price: int, result: TickResult) -> str | None:
        """Send startRound; a rejection is a no-op, other failures raise."""
        try:
            return self.ledger.start_round(start_price).tx_hash
        except TransactionRejected as e:
            self._note_noop(result, f"Next round already started elsewhere: {e}")
            return None

    def _note_noop(self, result: TickResult, message: str) -> None:
        logger.info(message)
        result.notes.append(message)
        if not result.tx_hash:
            result.action = ACTION_NONE

    async def _sync(self, round: Round, end_price: int, result: TickResult) -> None:
        if self.mirror_sync is None:
            return
        # Ledger time, identical for every sync of the round.
        settled_at = datetime.fromtimestamp(round.end_time, tz=timezone.utc)
        result.synced = await self.mirror_sync.sync_round(
            round.round_id,
            round.start_price,
            end_price,
            settled_at,
        )
