"""
Spot price fetchers used as the fallback price source.

Usage:
    from keeper.src.fetchers import get_fetcher, get_available_fetchers

    available = get_available_fetchers()
    # ['bitstamp', 'coinbase', 'kraken']

    fetcher = get_fetcher("coinbase")
    price = await fetcher.fetch(TradingPair("eth", "usd"))
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .bitstamp import BitstampFetcher
from .coinbase import CoinbaseFetcher
from .kraken import KrakenFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "BitstampFetcher",
    "CoinbaseFetcher",
    "KrakenFetcher",
]
