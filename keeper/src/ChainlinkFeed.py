"""ChainlinkFeed: Primary on-chain price feed.

Reads ``latestRoundData`` from a Chainlink aggregator and rescales the
answer to the keeper's fixed-point precision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from web3.exceptions import Web3Exception

from .ContractUtility import ContractUtility
from .fixed_point import PRICE_DECIMALS, rescale

if TYPE_CHECKING:
    from web3 import Web3
    from web3.contract import Contract

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Raised when the primary feed cannot be read."""

    pass


@dataclass(frozen=True)
class FeedReading:
    """A single reading of the primary feed.

    :ivar price: Answer rescaled to PRICE_DECIMALS. May be zero or negative.
    :ivar updated_at: Unix timestamp the feed last updated.
    :ivar feed_round_id: Aggregator round id of the answer.
    """

    price: int
    updated_at: int
    feed_round_id: int


class ChainlinkFeed:
    """Primary price feed backed by a Chainlink aggregator contract.

    :ivar contract: Aggregator contract instance.
    """

    name = "chainlink"

    def __init__(self, w3: Web3, address: str) -> None:
        """Initialize the feed.

        :param w3: Web3 instance used for reads.
        :param address: Aggregator contract address.
        """
        self.contract: Contract = w3.eth.contract(
            address=w3.to_checksum_address(address),
            abi=ContractUtility.get_contract("ChainlinkAggregator"),
        )
        self._decimals: int | None = None

    @property
    def decimals(self) -> int:
        """Aggregator decimals, read once per feed instance."""
        if self._decimals is None:
            self._decimals = int(self.contract.functions.decimals().call())
        return self._decimals

    def read(self) -> FeedReading:
        """Read the latest answer.

        :returns: The latest reading, rescaled to PRICE_DECIMALS.
        :raises PriceFeedError: If the aggregator cannot be queried.
        """
        try:
            feed_round_id, answer, _, updated_at, _ = (
                self.contract.functions.latestRoundData().call()
            )
            decimals = self.decimals
        except (Web3Exception, OSError, ValueError) as e:
            raise PriceFeedError(f"latestRoundData failed: {e}") from e

        price = rescale(int(answer), decimals, PRICE_DECIMALS)
        logger.debug(
            f"[chainlink] answer={answer} decimals={decimals} "
            f"updated_at={updated_at} round={feed_round_id}"
        )
        return FeedReading(
            price=price,
            updated_at=int(updated_at),
            feed_round_id=int(feed_round_id),
        )
