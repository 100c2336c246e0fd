"""MirrorSync: Copy a settled round's wagers into the mirror store.

Outcomes are taken from what the ledger recorded for each wager and are
never recomputed from prices. Sync is idempotent: records are upserted by
ledger bet id, so running it again for the same round (after a restart, or
from an overlapping invocation) leaves the store unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .Ledger import LedgerError
from .LedgerTypes import BetResult, Direction, Wager
from .MirrorStore import MirrorRecord, MirrorStoreError
from .fixed_point import PRICE_DECIMALS, TOKEN_DECIMALS, to_decimal

if TYPE_CHECKING:
    from .Ledger import Ledger
    from .MirrorStore import MirrorStore

logger = logging.getLogger(__name__)

DIRECTION_NAMES = {
    Direction.UP: "up",
    Direction.DOWN: "down",
    Direction.NONE: "none",
}

RESULT_NAMES = {
    BetResult.WIN: "win",
    BetResult.LOSE: "loss",
    BetResult.PENDING: "pending",
}


def wager_to_record(
    wager: Wager, start_price: int, end_price: int, settled_at: datetime
) -> MirrorRecord:
    """Build the mirror record for a settled wager.

    :param wager: Wager as read from the ledger.
    :param start_price: Round start price with 8 decimals.
    :param end_price: Round end price with 8 decimals.
    :param settled_at: Settlement time.
    """
    return MirrorRecord(
        chain_bet_id=wager.bet_id,
        round_id=wager.round_id,
        wallet_address=wager.user.lower(),
        direction=DIRECTION_NAMES[wager.direction],
        amount=to_decimal(wager.amount, TOKEN_DECIMALS),
        result=RESULT_NAMES[wager.result],
        payout=to_decimal(wager.payout, TOKEN_DECIMALS),
        placed_at=datetime.fromtimestamp(wager.timestamp, tz=timezone.utc),
        settled_at=settled_at,
        start_price=to_decimal(start_price, PRICE_DECIMALS),
        end_price=to_decimal(end_price, PRICE_DECIMALS),
    )


class SettlementMirrorSync:
    """Mirrors settled wagers from the ledger into a MirrorStore.

    :ivar ledger: Ledger to read wagers from.
    :ivar store: Destination store.
    """

    def __init__(self, ledger: Ledger, store: MirrorStore) -> None:
        """Initialize the sync.

        :param ledger: Ledger to read wagers from.
        :param store: Mirror store to upsert into.
        """
        self.ledger = ledger
        self.store = store

    async def sync_round(
        self,
        round_id: int,
        start_price: int,
        end_price: int,
        settled_at: datetime | None = None,
    ) -> int:
        """Mirror all wagers of a settled round.

        Failures are logged and reported as 0 records; the on-chain
        settlement is never affected.

        :param round_id: Settled round id.
        :param start_price: Round start price with 8 decimals.
        :param end_price: Round end price with 8 decimals.
        :param settled_at: Settlement time (default: now, UTC).
        :returns: Number of records upserted.
        """
        settled_at = settled_at or datetime.now(timezone.utc)
        logger.info(f"Syncing bets for round {round_id} to mirror")

        try:
            wagers = self.ledger.get_round_bets(round_id)
        except LedgerError as e:
            logger.error(f"Round {round_id}: could not read bets for mirror sync: {e}")
            return 0

        logger.info(f"Found {len(wagers)} bets in round {round_id}")
        if not wagers:
            return 0

        records = [wager_to_record(w, start_price, end_price, settled_at) for w in wagers]

        try:
            written = await self.store.upsert_records(records)
        except MirrorStoreError as e:
            logger.error(f"Round {round_id}: mirror upsert failed: {e}")
            return 0

        logger.info(f"Synced {written} bets for round {round_id} to mirror")
        return written
