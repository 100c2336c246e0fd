"""Kraken fetcher.

Endpoint: https://api.kraken.com/0/public/Ticker?pair={BASE}{QUOTE}
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
class KrakenFetcher(BaseFetcher):
    """Fetcher for Kraken public API.

    No API key required.
    """

    name = "kraken"
    BASE_URL = "https://api.kraken.com/0/public"

    # Kraken uses non-standard ticker symbols
    SYMBOL_MAP = {
        "btc": "XBT",
    }

    async def fetch(self, pair: TradingPair) -> Decimal | None:
        """Fetch last trade price from Kraken.

        :param pair: Trading pair (e.g., eth/usd).
        :returns: Current price or None on failure.
        """
        kraken_base = self.SYMBOL_MAP.get(pair.base, pair.base.upper())
        symbol = f"{kraken_base}{pair.quote.upper()}"

        try:
            response = await self._get(f"{self.BASE_URL}/Ticker", params={"pair": symbol})
            data = response.json()

            if data.get("error"):
                logger.warning(f"[kraken] API error for {symbol}: {data['error']}")
                return None

            result = data.get("result", {})
            if not result:
                logger.warning(f"[kraken] No result for {symbol}")
                return None

            # Result is keyed by Kraken's own pair name (e.g. XETHZUSD)
            pair_data = list(result.values())[0]

            # 'c' is the last trade closed array: [price, lot volume]
            return Decimal(str(pair_data["c"][0]))

        except FetcherError as e:
            logger.warning(f"[kraken] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, IndexError, InvalidOperation, ValueError, TypeError) as e:
            logger.warning(f"[kraken] Failed to parse response for {symbol}: {e}")
            return None
