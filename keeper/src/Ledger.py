"""Ledger: Abstract interface to the authoritative betting contract.

The ledger is the only shared mutable state the keeper touches and it is
never modified directly: reads are queries, writes are transactions the
contract validates. A write that targets an already-resolved or
already-started round must be rejected by the ledger; implementations
report that as TransactionRejected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .LedgerTypes import Round, TxResult, Wager


class LedgerError(Exception):
    """Raised when the ledger cannot be read."""

    pass


class TransactionFailed(LedgerError):
    """Raised when a write was not confirmed.

    :ivar action: Contract function that was called.
    :ivar tx_hash: Hash of the sent transaction, if it was sent.
    """

    def __init__(self, action: str, message: str, tx_hash: str | None = None):
        """Initialize the error.

        :param action: Contract function name (e.g., "settleRound").
        :param message: Failure description.
        :param tx_hash: Transaction hash if the transaction was broadcast.
        """
        self.action = action
        self.tx_hash = tx_hash
        super().__init__(f"{action} failed: {message}")


class TransactionRejected(TransactionFailed):
    """The ledger refused the write (revert or failed receipt).

    Usually another invocation already advanced the round.
    """

    pass


class TransactionTimeout(TransactionFailed):
    """The transaction was sent but no receipt was observed in time.

    Whether it eventually lands is unknown; only a fresh read can tell.
    """

    pass


class Ledger(ABC):
    """Read/write interface to the betting contract."""

    @abstractmethod
    def current_round_id(self) -> int:
        """Id of the current round, 0 if no round was ever started."""
        pass

    @abstractmethod
    def is_betting_open(self) -> bool:
        """Whether the current round accepts bets."""
        pass

    @abstractmethod
    def seconds_remaining(self) -> int:
        """Seconds until the current round ends, 0 once it has ended."""
        pass

    @abstractmethod
    def get_current_round(self) -> Round:
        """The current round."""
        pass

    @abstractmethod
    def get_round(self, round_id: int) -> Round:
        """A round by id."""
        pass

    @abstractmethod
    def get_round_bets(self, round_id: int) -> list[Wager]:
        """All wagers placed in a round."""
        pass

    @abstractmethod
    def round_duration(self) -> int:
        """Fixed round duration in seconds."""
        pass

    @abstractmethod
    def betting_cutoff(self) -> int:
        """Seconds before round end after which betting is closed."""
        pass

    @abstractmethod
    def start_round(self, start_price: int) -> TxResult:
        """Start the next round with the given start price.

        :param start_price: Price with 8 decimals.
        :returns: The confirmed transaction.
        :raises TransactionFailed: If the write was not confirmed.
        """
        pass

    @abstractmethod
    def settle_round(self, round_id: int, end_price: int) -> TxResult:
        """Settle a round with the given end price.

        :param round_id: Round to settle.
        :param end_price: Price with 8 decimals.
        :returns: The confirmed transaction.
        :raises TransactionFailed: If the write was not confirmed.
        """
        pass
