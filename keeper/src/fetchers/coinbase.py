"""Coinbase spot price fetcher.

Endpoint: https://api.coinbase.com/v2/prices/{BASE}-{QUOTE}/spot
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
class CoinbaseFetcher(BaseFetcher):
    """Fetcher for the Coinbase public spot price API.

    No API key required.
    """

    name = "coinbase"
    BASE_URL = "https://api.coinbase.com/v2"

    async def fetch(self, pair: TradingPair) -> Decimal | None:
        """Fetch spot price from Coinbase.

        :param pair: Trading pair (e.g., eth/usd).
        :returns: Current price or None on failure.
        """
        symbol = pair.symbol("-")
        url = f"{self.BASE_URL}/prices/{symbol}/spot"

        try:
            response = await self._get(url)
            data = response.json()

            amount = (data.get("data") or {}).get("amount")
            if amount is None:
                logger.warning(f"[coinbase] No amount in response for {symbol}: {data}")
                return None

            return Decimal(str(amount))

        except FetcherError as e:
            logger.warning(f"[coinbase] Failed to fetch {symbol}: {e}")
            return None
        except (AttributeError, InvalidOperation, ValueError, TypeError) as e:
            logger.warning(f"[coinbase] Failed to parse response for {symbol}: {e}")
            return None
