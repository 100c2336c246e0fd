"""Unit tests for LedgerClient, ChainlinkFeed and the ledger record types."""

from unittest.mock import MagicMock

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from keeper.src.ChainlinkFeed import ChainlinkFeed, PriceFeedError
from keeper.src.ContractUtility import ContractUtility
from keeper.src.Ledger import (
    LedgerError,
    TransactionFailed,
    TransactionRejected,
    TransactionTimeout,
)
from keeper.src.LedgerClient import LedgerClient
from keeper.src.LedgerTypes import BetResult, Direction, Round, Wager

TX_HASH = bytes.fromhex("ab" * 32)
ROUND_TUPLE = (7, 1_700_000_000, 1_700_000_300, 300_000_000_000, 0, 5 * 10**18, 2 * 10**18, 0, False)
BET_TUPLE = (11, 7, "0xAbCdEf0000000000000000000000000000000001", 1, 10**18, 1_700_000_010, 1, 2 * 10**18)


@pytest.fixture
def w3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.default_account = "0x0000000000000000000000000000000000000001"
    w3.eth.gas_price = 1_000_000
    w3.eth.send_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 42}
    return w3


@pytest.fixture
def client(w3) -> LedgerClient:
    return LedgerClient(w3, confirm_timeout=5.0, poll_latency=0.1)


def set_view(client: LedgerClient, name: str, value) -> MagicMock:
    function = getattr(client.contract.functions, name)
    function.return_value.call.return_value = value
    return function


class TestRecordTypes:
    """Test decoding of contract struct tuples."""

    def test_round_from_tuple(self) -> None:
        """Round fields follow the ABI order."""
        round = Round.from_tuple(ROUND_TUPLE)
        assert round.round_id == 7
        assert round.end_time - round.start_time == 300
        assert round.start_price == 300_000_000_000
        assert round.result is Direction.NONE
        assert round.resolved is False

    def test_wager_from_tuple(self) -> None:
        """Wager fields follow the ABI order."""
        wager = Wager.from_tuple(BET_TUPLE)
        assert wager.bet_id == 11
        assert wager.round_id == 7
        assert wager.direction is Direction.UP
        assert wager.result is BetResult.WIN
        assert wager.payout == 2 * 10**18


class TestContractUtility:
    """Test ABI loading and network resolution."""

    def test_bundled_abis(self) -> None:
        """Both bundled ABIs load and expose the needed functions."""
        betting = {e.get("name") for e in ContractUtility.get_contract("BloomBetting")}
        feed = {e.get("name") for e in ContractUtility.get_contract("ChainlinkAggregator")}
        assert {"startRound", "settleRound", "getRoundBets", "getTimeRemaining"} <= betting
        assert {"latestRoundData", "decimals"} <= feed

    def test_network_name_resolved(self) -> None:
        """Known network names map to RPC URLs."""
        assert ContractUtility("base-sepolia").rpc_url == "https://sepolia.base.org"
        assert ContractUtility("http://127.0.0.1:9999").rpc_url == "http://127.0.0.1:9999"

    def test_private_key_sets_default_account(self) -> None:
        """A private key (with or without 0x) becomes the default account."""
        key = "11" * 32
        utility = ContractUtility("localnet", private_key=key)
        assert utility.account is not None
        assert utility.w3.eth.default_account == utility.account.address


class TestLedgerReads:
    """Test view calls."""

    def test_reads(self, client) -> None:
        """View calls are decoded into Python types."""
        set_view(client, "currentRoundId", 7)
        set_view(client, "isBettingOpen", True)
        set_view(client, "getTimeRemaining", 120)
        set_view(client, "getCurrentRound", ROUND_TUPLE)

        assert client.current_round_id() == 7
        assert client.is_betting_open() is True
        assert client.seconds_remaining() == 120
        assert client.get_current_round().round_id == 7

    def test_round_bets(self, client) -> None:
        """getRoundBets returns Wagers for the requested round."""
        function = set_view(client, "getRoundBets", [BET_TUPLE])
        bets = client.get_round_bets(7)
        function.assert_called_with(7)
        assert [b.bet_id for b in bets] == [11]

    def test_constants_cached(self, client) -> None:
        """Round duration and cutoff are read once."""
        duration = set_view(client, "ROUND_DURATION", 300)
        set_view(client, "BETTING_CUTOFF", 10)
        assert client.round_duration() == 300
        assert client.round_duration() == 300
        assert client.betting_cutoff() == 10
        assert duration.return_value.call.call_count == 1

    def test_undecodable_round(self, client) -> None:
        """A round with an unknown result enum surfaces as LedgerError."""
        set_view(client, "getRound", ROUND_TUPLE[:7] + (9, True))
        with pytest.raises(LedgerError, match="getRound"):
            client.get_round(7)

    def test_undecodable_bet(self, client) -> None:
        """A bet with an unknown direction surfaces as LedgerError."""
        set_view(client, "getRoundBets", [BET_TUPLE[:3] + (5,) + BET_TUPLE[4:]])
        with pytest.raises(LedgerError, match="getRoundBets"):
            client.get_round_bets(7)

    def test_read_failure(self, client) -> None:
        """Transport errors surface as LedgerError."""
        function = client.contract.functions.currentRoundId
        function.return_value.call.side_effect = Web3Exception("connection reset")
        with pytest.raises(LedgerError, match="currentRoundId"):
            client.current_round_id()


class TestLedgerWrites:
    """Test transaction submission and confirmation."""

    def test_start_round(self, client, w3) -> None:
        """A confirmed startRound returns hash and block."""
        result = client.start_round(300_000_000_000)

        client.contract.functions.startRound.assert_called_with(300_000_000_000)
        assert result.tx_hash == "0x" + "ab" * 32
        assert result.block_number == 42
        w3.eth.wait_for_transaction_receipt.assert_called_with(
            TX_HASH, timeout=5.0, poll_latency=0.1
        )

    def test_settle_round(self, client) -> None:
        """settleRound passes the round id and end price."""
        client.settle_round(7, 301_250_000_000)
        client.contract.functions.settleRound.assert_called_with(7, 301_250_000_000)

    def test_revert_on_build(self, client, w3) -> None:
        """A revert during gas estimation is a rejection and nothing is sent."""
        build = client.contract.functions.settleRound.return_value.build_transaction
        build.side_effect = ContractLogicError("execution reverted: Round already resolved")

        with pytest.raises(TransactionRejected) as exc:
            client.settle_round(7, 1)
        assert exc.value.action == "settleRound"
        w3.eth.send_transaction.assert_not_called()

    def test_failed_receipt(self, client, w3) -> None:
        """A mined but failed transaction is a rejection."""
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 42}
        with pytest.raises(TransactionRejected) as exc:
            client.start_round(1)
        assert exc.value.tx_hash == "0x" + "ab" * 32

    def test_receipt_timeout(self, client, w3) -> None:
        """No receipt in time is a timeout carrying the sent hash."""
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timed out")
        with pytest.raises(TransactionTimeout) as exc:
            client.start_round(1)
        assert exc.value.tx_hash == "0x" + "ab" * 32
        assert "startRound failed" in str(exc.value)

    def test_send_failure(self, client, w3) -> None:
        """A send that never reached the node is a plain failure."""
        w3.eth.send_transaction.side_effect = OSError("connection refused")
        with pytest.raises(TransactionFailed) as exc:
            client.start_round(1)
        assert not isinstance(exc.value, (TransactionRejected, TransactionTimeout))
        assert exc.value.tx_hash is None


class TestChainlinkFeed:
    """Test the primary feed reader."""

    def make_feed(self, decimals: int, answer: int) -> ChainlinkFeed:
        feed = ChainlinkFeed(MagicMock(), "0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70")
        feed.contract.functions.decimals.return_value.call.return_value = decimals
        feed.contract.functions.latestRoundData.return_value.call.return_value = (
            99,
            answer,
            1_700_000_000,
            1_700_000_100,
            99,
        )
        return feed

    def test_eight_decimals(self) -> None:
        """An 8-decimal aggregator answer is used as-is."""
        reading = self.make_feed(8, 301_212_345_678).read()
        assert reading.price == 301_212_345_678
        assert reading.updated_at == 1_700_000_100
        assert reading.feed_round_id == 99

    def test_rescaled(self) -> None:
        """Answers with more decimals are truncated to eight."""
        reading = self.make_feed(18, 3_012_123_456_789_999_999_999).read()
        assert reading.price == 301_212_345_678

    def test_read_failure(self) -> None:
        """RPC errors become PriceFeedError."""
        feed = self.make_feed(8, 1)
        feed.contract.functions.latestRoundData.return_value.call.side_effect = OSError("down")
        with pytest.raises(PriceFeedError):
            feed.read()
