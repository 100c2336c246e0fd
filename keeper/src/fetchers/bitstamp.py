"""Bitstamp fetcher.

Endpoint: https://www.bitstamp.net/api/v2/ticker/{base}{quote}/
Rate Limit: High (no key required)
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from .base import BaseFetcher, FetcherError, register_fetcher

if TYPE_CHECKING:
    from ..TradingPair import TradingPair

logger = logging.getLogger(__name__)


@register_fetcher
class BitstampFetcher(BaseFetcher):
    """Fetcher for Bitstamp public API."""

    name = "bitstamp"
    BASE_URL = "https://www.bitstamp.net/api/v2"

    async def fetch(self, pair: TradingPair) -> Decimal | None:
        """Fetch last trade price from Bitstamp.

        :param pair: Trading pair (e.g., eth/usd).
        :returns: Current price or None on failure.
        """
        symbol = pair.symbol().lower()

        try:
            response = await self._get(f"{self.BASE_URL}/ticker/{symbol}/")
            data = response.json()

            if "last" not in data:
                logger.warning(f"[bitstamp] No 'last' price for {symbol}: {data}")
                return None

            return Decimal(str(data["last"]))

        except FetcherError as e:
            logger.warning(f"[bitstamp] Failed to fetch {symbol}: {e}")
            return None
        except (InvalidOperation, ValueError, TypeError) as e:
            logger.warning(f"[bitstamp] Failed to parse response for {symbol}: {e}")
            return None
