"""Shared fixtures: an in-memory ledger and controllable price feeds."""

from __future__ import annotations

import copy
import json
from decimal import Decimal

import httpx
import pytest

from keeper.src.ChainlinkFeed import FeedReading, PriceFeedError
from keeper.src.fetchers import BaseFetcher
from keeper.src.Ledger import Ledger, TransactionRejected
from keeper.src.LedgerTypes import BetResult, Direction, Round, TxResult, Wager
from keeper.src.MirrorStoreSupabase import SupabaseMirrorStore
from keeper.src.TradingPair import TradingPair

ROUND_DURATION = 300
BETTING_CUTOFF = 10
START_TIME = 1_700_000_000


class FakeLedger(Ledger):
    """In-memory betting contract with the contract's rejection rules.

    startRound reverts while the current round is unresolved; settleRound
    reverts unless it targets the current, unresolved, expired round.
    """

    def __init__(self) -> None:
        self.now = START_TIME
        self.rounds: dict[int, Round] = {}
        self.bets: dict[int, list[Wager]] = {}
        self.current_id = 0
        self.next_bet_id = 1
        self.transactions: list[tuple] = []
        self.fail_next_start: type[Exception] | None = None
        self.fail_next_settle: type[Exception] | None = None

    # Reads

    def current_round_id(self) -> int:
        return self.current_id

    def is_betting_open(self) -> bool:
        if self.current_id == 0:
            return False
        round = self.rounds[self.current_id]
        return not round.resolved and self.seconds_remaining() > BETTING_CUTOFF

    def seconds_remaining(self) -> int:
        if self.current_id == 0:
            return 0
        return max(0, self.rounds[self.current_id].end_time - self.now)

    def get_current_round(self) -> Round:
        return self.get_round(self.current_id)

    def get_round(self, round_id: int) -> Round:
        return self.rounds[round_id]

    def get_round_bets(self, round_id: int) -> list[Wager]:
        return list(self.bets.get(round_id, []))

    def round_duration(self) -> int:
        return ROUND_DURATION

    def betting_cutoff(self) -> int:
        return BETTING_CUTOFF

    # Writes

    def start_round(self, start_price: int) -> TxResult:
        if self.fail_next_start is not None:
            error, self.fail_next_start = self.fail_next_start, None
            raise error("startRound", "injected failure")
        if self.current_id and not self.rounds[self.current_id].resolved:
            raise TransactionRejected("startRound", "reverted: round in progress")

        self.current_id += 1
        self.rounds[self.current_id] = Round(
            round_id=self.current_id,
            start_time=self.now,
            end_time=self.now + ROUND_DURATION,
            start_price=start_price,
            end_price=0,
            total_up_pool=0,
            total_down_pool=0,
            result=Direction.NONE,
            resolved=False,
        )
        return self._record("startRound", start_price)

    def settle_round(self, round_id: int, end_price: int) -> TxResult:
        if self.fail_next_settle is not None:
            error, self.fail_next_settle = self.fail_next_settle, None
            raise error("settleRound", "injected failure")
        round = self.rounds.get(round_id)
        if round is None or round_id != self.current_id:
            raise TransactionRejected("settleRound", "reverted: not current round")
        if round.resolved:
            raise TransactionRejected("settleRound", "reverted: already resolved")
        if self.now < round.end_time:
            raise TransactionRejected("settleRound", "reverted: round not ended")

        if end_price > round.start_price:
            result = Direction.UP
        elif end_price < round.start_price:
            result = Direction.DOWN
        else:
            result = Direction.NONE

        self.rounds[round_id] = Round(
            round_id=round.round_id,
            start_time=round.start_time,
            end_time=round.end_time,
            start_price=round.start_price,
            end_price=end_price,
            total_up_pool=round.total_up_pool,
            total_down_pool=round.total_down_pool,
            result=result,
            resolved=True,
        )
        self.bets[round_id] = [
            Wager(
                bet_id=b.bet_id,
                round_id=b.round_id,
                user=b.user,
                direction=b.direction,
                amount=b.amount,
                timestamp=b.timestamp,
                result=BetResult.WIN if b.direction == result else BetResult.LOSE,
                payout=b.amount * 2 if b.direction == result else 0,
            )
            for b in self.bets.get(round_id, [])
        ]
        return self._record("settleRound", round_id, end_price)

    # Test helpers

    def place_bet(self, user: str, direction: Direction, amount: int) -> Wager:
        wager = Wager(
            bet_id=self.next_bet_id,
            round_id=self.current_id,
            user=user,
            direction=direction,
            amount=amount,
            timestamp=self.now,
            result=BetResult.PENDING,
            payout=0,
        )
        self.next_bet_id += 1
        self.bets.setdefault(self.current_id, []).append(wager)
        return wager

    def advance(self, seconds: int) -> None:
        self.now += seconds

    def actions(self) -> list[str]:
        return [tx[0] for tx in self.transactions]

    def _record(self, action: str, *args: int) -> TxResult:
        self.transactions.append((action, *args))
        n = len(self.transactions)
        return TxResult(tx_hash=f"0x{n:064x}", block_number=1000 + n)


class LaggingLedger(Ledger):
    """A view that answers reads from a frozen copy but writes through.

    Models an invocation that observed the ledger just before an
    overlapping invocation advanced it.
    """

    def __init__(self, ledger: FakeLedger) -> None:
        self.live = ledger
        self.frozen = copy.deepcopy(ledger)

    @property
    def now(self) -> int:
        return self.live.now

    def current_round_id(self) -> int:
        return self.frozen.current_round_id()

    def is_betting_open(self) -> bool:
        return self.frozen.is_betting_open()

    def seconds_remaining(self) -> int:
        return self.frozen.seconds_remaining()

    def get_current_round(self) -> Round:
        return self.frozen.get_current_round()

    def get_round(self, round_id: int) -> Round:
        return self.live.get_round(round_id)

    def get_round_bets(self, round_id: int) -> list[Wager]:
        return self.live.get_round_bets(round_id)

    def round_duration(self) -> int:
        return ROUND_DURATION

    def betting_cutoff(self) -> int:
        return BETTING_CUTOFF

    def start_round(self, start_price: int) -> TxResult:
        return self.live.start_round(start_price)

    def settle_round(self, round_id: int, end_price: int) -> TxResult:
        return self.live.settle_round(round_id, end_price)


class FakePrimaryFeed:
    """Primary feed returning a settable answer (8 decimals)."""

    name = "chainlink"

    def __init__(self, price: int | None = None, updated_at: int = START_TIME) -> None:
        self.price = price
        self.updated_at = updated_at
        self.reads = 0

    def read(self) -> FeedReading:
        self.reads += 1
        if self.price is None:
            raise PriceFeedError("feed unreachable")
        return FeedReading(price=self.price, updated_at=self.updated_at, feed_round_id=1)


class FakeFetcher(BaseFetcher):
    """Fallback fetcher returning a settable Decimal."""

    name = "fake"

    def __init__(self, price: Decimal | None = None) -> None:
        super().__init__()
        self.price = price
        self.calls = 0

    async def fetch(self, pair: TradingPair) -> Decimal | None:
        self.calls += 1
        return self.price


class InMemoryPostgrest:
    """MockTransport handler emulating a PostgREST table keyed by chain_bet_id.

    POST merges rows into existing ones (merge-duplicates); GET supports
    the round_id=eq.N filter.
    """

    def __init__(self) -> None:
        self.rows: dict[int, dict] = {}
        self.posts = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.posts += 1
            for row in json.loads(request.content):
                key = row["chain_bet_id"]
                self.rows[key] = {**self.rows.get(key, {}), **row}
            return httpx.Response(201)

        rows = [self.rows[k] for k in sorted(self.rows)]
        round_filter = request.url.params.get("round_id")
        if round_filter:
            round_id = int(round_filter.removeprefix("eq."))
            rows = [r for r in rows if r["round_id"] == round_id]
        return httpx.Response(200, json=rows)

    def store(self) -> SupabaseMirrorStore:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return SupabaseMirrorStore("https://xyz.supabase.co", "service-key", client=client)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def pair() -> TradingPair:
    return TradingPair("eth", "usd")


@pytest.fixture
def primary() -> FakePrimaryFeed:
    return FakePrimaryFeed(price=300_000_000_000)


@pytest.fixture
def fallback() -> FakeFetcher:
    return FakeFetcher()

