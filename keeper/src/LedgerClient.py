"""LedgerClient: Web3 implementation of the Ledger interface."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Sequence, TypeVar

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .ContractUtility import ContractUtility
from .Ledger import (
    Ledger,
    LedgerError,
    TransactionFailed,
    TransactionRejected,
    TransactionTimeout,
)
from .LedgerTypes import Round, TxResult, Wager

if TYPE_CHECKING:
    from web3.contract import Contract
    from web3.contract.contract import ContractFunction

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default BloomBetting deployment on Base mainnet.
DEFAULT_BETTING_ADDRESS = "0x9cE39DDf290094e9915E2D908b6D99e33167c977"


def _decode(name: str, decoder: Callable[[Sequence], T], data: Sequence) -> T:
    """Decode a struct tuple, reporting malformed data as LedgerError."""
    try:
        return decoder(data)
    except (ValueError, TypeError, IndexError) as e:
        raise LedgerError(f"{name} returned undecodable data {data!r}: {e}") from e


class LedgerClient(Ledger):
    """Ledger backed by the BloomBetting contract.

    Writes are signed by the Web3 instance's default account and block
    until the receipt is observed or ``confirm_timeout`` elapses. Writes
    are never retried here: callers re-read ledger state and re-decide.

    :ivar w3: Web3 instance with a signing default account.
    :ivar contract: BloomBetting contract instance.
    :ivar confirm_timeout: Seconds to wait for a receipt.
    """

    def __init__(
        self,
        w3: Web3,
        address: str = DEFAULT_BETTING_ADDRESS,
        confirm_timeout: float = 120.0,
        poll_latency: float = 0.5,
    ) -> None:
        """Initialize the ledger client.

        :param w3: Web3 instance.
        :param address: BloomBetting contract address.
        :param confirm_timeout: Seconds to wait for transaction receipts.
        :param poll_latency: Seconds between receipt polls.
        """
        self.w3 = w3
        self.contract: Contract = w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=ContractUtility.get_contract("BloomBetting"),
        )
        self.confirm_timeout = confirm_timeout
        self.poll_latency = poll_latency
        self._round_duration: int | None = None
        self._betting_cutoff: int | None = None

    def _call(self, name: str, *args: Any) -> Any:
        """Call a view function, wrapping transport and revert errors.

        :raises LedgerError: If the call fails.
        """
        try:
            return getattr(self.contract.functions, name)(*args).call()
        except (Web3Exception, OSError, ValueError) as e:
            raise LedgerError(f"{name}{args} failed: {e}") from e

    def current_round_id(self) -> int:
        return int(self._call("currentRoundId"))

    def is_betting_open(self) -> bool:
        return bool(self._call("isBettingOpen"))

    def seconds_remaining(self) -> int:
        return int(self._call("getTimeRemaining"))

    def get_current_round(self) -> Round:
        return _decode("getCurrentRound", Round.from_tuple, self._call("getCurrentRound"))

    def get_round(self, round_id: int) -> Round:
        return _decode("getRound", Round.from_tuple, self._call("getRound", round_id))

    def get_round_bets(self, round_id: int) -> list[Wager]:
        return [
            _decode("getRoundBets", Wager.from_tuple, bet)
            for bet in self._call("getRoundBets", round_id)
        ]

    def round_duration(self) -> int:
        if self._round_duration is None:
            self._round_duration = int(self._call("ROUND_DURATION"))
        return self._round_duration

    def betting_cutoff(self) -> int:
        if self._betting_cutoff is None:
            self._betting_cutoff = int(self._call("BETTING_CUTOFF"))
        return self._betting_cutoff

    def start_round(self, start_price: int) -> TxResult:
        return self._transact("startRound", self.contract.functions.startRound(start_price))

    def settle_round(self, round_id: int, end_price: int) -> TxResult:
        return self._transact(
            "settleRound", self.contract.functions.settleRound(round_id, end_price)
        )

    def _transact(self, action: str, function: ContractFunction) -> TxResult:
        """Build, send and confirm a transaction.

        Gas estimation during build surfaces contract reverts before
        anything is broadcast.

        :param action: Contract function name for logging and errors.
        :param function: Bound contract function.
        :returns: The confirmed transaction.
        :raises TransactionRejected: On revert or a failed receipt.
        :raises TransactionTimeout: If no receipt arrives in time.
        :raises TransactionFailed: On any other send failure.
        """
        try:
            tx_params = function.build_transaction(
                {"from": self.w3.eth.default_account, "gasPrice": self.w3.eth.gas_price}
            )
        except ContractLogicError as e:
            raise TransactionRejected(action, f"reverted: {e}") from e
        except (Web3Exception, OSError, ValueError) as e:
            raise TransactionFailed(action, f"could not build transaction: {e}") from e

        try:
            tx_hash = self.w3.eth.send_transaction(tx_params)
        except ContractLogicError as e:
            raise TransactionRejected(action, f"reverted: {e}") from e
        except (Web3Exception, OSError, ValueError) as e:
            raise TransactionFailed(action, f"could not send transaction: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"{action}: transaction sent {tx_hex}")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirm_timeout, poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            raise TransactionTimeout(
                action, f"no receipt after {self.confirm_timeout}s", tx_hash=tx_hex
            ) from e
        except (Web3Exception, OSError, ValueError) as e:
            raise TransactionTimeout(
                action, f"receipt polling failed: {e}", tx_hash=tx_hex
            ) from e

        if receipt["status"] != 1:
            raise TransactionRejected(action, "receipt status 0", tx_hash=tx_hex)

        block_number = int(receipt["blockNumber"])
        logger.info(f"{action}: transaction {tx_hex} confirmed in block {block_number}")
        return TxResult(tx_hash=tx_hex, block_number=block_number)
