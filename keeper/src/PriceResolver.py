"""PriceResolver: Reference price for starting and settling rounds.

The primary feed is authoritative. The fallback spot fetcher is only
consulted at settlement when the primary answer is exactly equal to the
round's start price: low-frequency feeds often do not update within a
round, and settling with an unchanged price turns every round into a draw.

.. code-block:: python

    resolver = PriceResolver(primary=feed, fallback=get_fetcher("coinbase"), pair=pair)
    start = await resolver.resolve_price()
    end = await resolver.resolve_settlement_price(round.start_price, start.price)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from .ChainlinkFeed import PriceFeedError
from .fixed_point import format_price, parse_decimal_price

if TYPE_CHECKING:
    from .ChainlinkFeed import ChainlinkFeed
    from .fetchers import BaseFetcher
    from .TradingPair import TradingPair

logger = logging.getLogger(__name__)


class PriceUnavailable(Exception):
    """Raised when no usable primary price could be obtained."""

    pass


class PriceSource(str, Enum):
    """Where a resolved price came from."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ResolvedPrice:
    """A point-in-time price.

    :ivar price: Price with 8 decimals.
    :ivar source: Primary or fallback.
    :ivar feed: Name of the feed that produced the value.
    """

    price: int
    source: PriceSource
    feed: str

    def __str__(self) -> str:
        return f"{format_price(self.price)} ({self.source.value}:{self.feed})"


class PriceResolver:
    """Resolves start and settlement prices.

    :ivar primary: Primary on-chain feed.
    :ivar fallback: Optional spot fetcher for unchanged settlement prices.
    :ivar pair: Pair the fallback fetcher is queried for.
    :ivar max_age: Maximum primary answer age in seconds, or None.
    :ivar fetch_timeout: Timeout for each feed call in seconds.
    """

    def __init__(
        self,
        primary: ChainlinkFeed,
        pair: TradingPair,
        fallback: BaseFetcher | None = None,
        max_age: int | None = 3600,
        fetch_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the resolver.

        :param primary: Primary feed.
        :param pair: Trading pair.
        :param fallback: Optional fallback fetcher.
        :param max_age: Max primary answer age in seconds (None disables).
        :param fetch_timeout: Per-call timeout in seconds.
        :param clock: Returns the current Unix time.
        """
        self.primary = primary
        self.pair = pair
        self.fallback = fallback
        self.max_age = max_age
        self.fetch_timeout = fetch_timeout
        self._clock = clock

    async def resolve_price(self) -> ResolvedPrice:
        """Read a usable price from the primary feed.

        :returns: Primary price.
        :raises PriceUnavailable: If the feed is unreachable, non-positive or stale.
        """
        try:
            reading = await asyncio.wait_for(
                asyncio.to_thread(self.primary.read),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError as e:
            raise PriceUnavailable(f"[{self.primary.name}] Timeout reading feed") from e
        except PriceFeedError as e:
            raise PriceUnavailable(f"[{self.primary.name}] {e}") from e

        if reading.price <= 0:
            raise PriceUnavailable(
                f"[{self.primary.name}] Non-positive answer {reading.price}"
            )

        if self.max_age:
            age = int(self._clock()) - reading.updated_at
            if age > self.max_age:
                raise PriceUnavailable(
                    f"[{self.primary.name}] Answer is {age}s old (max {self.max_age}s)"
                )

        return ResolvedPrice(reading.price, PriceSource.PRIMARY, self.primary.name)

    async def resolve_settlement_price(
        self, start_price: int, primary_price: int
    ) -> ResolvedPrice:
        """Pick the price a round is settled with.

        :param start_price: The round's start price.
        :param primary_price: Price just read from the primary feed.
        :returns: The fallback price if the primary has not moved and the
            fallback has, otherwise the primary price unchanged.
        """
        primary = ResolvedPrice(primary_price, PriceSource.PRIMARY, self.primary.name)

        if start_price <= 0 or primary_price != start_price:
            return primary

        if self.fallback is None:
            logger.warning(
                f"{self.pair}: Primary price unchanged at {format_price(primary_price)} "
                "and no fallback configured; settling with unchanged price"
            )
            return primary

        spot = await self._fetch_fallback(self.fallback)
        if spot is not None and spot > 0 and spot != start_price:
            logger.info(
                f"{self.pair}: Primary unchanged at {format_price(primary_price)}; "
                f"using {self.fallback.name} spot {format_price(spot)}"
            )
            return ResolvedPrice(spot, PriceSource.FALLBACK, self.fallback.name)

        logger.info(
            f"{self.pair}: Primary and {self.fallback.name} both unchanged or "
            f"unavailable; settling with {format_price(primary_price)}"
        )
        return primary

    async def _fetch_fallback(self, fallback: BaseFetcher) -> int | None:
        """Fetch the fallback spot price as a fixed-point integer, or None."""
        try:
            value = await asyncio.wait_for(
                fallback.fetch(self.pair),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{fallback.name}] Timeout fetching {self.pair}")
            return None

        if value is None:
            return None

        try:
            return parse_decimal_price(value)
        except ValueError as e:
            logger.warning(f"[{fallback.name}] Unusable price {value!r}: {e}")
            return None
