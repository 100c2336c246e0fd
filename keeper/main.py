#!/usr/bin/env python3
"""Bloom Round Keeper.

Keeps the BloomBetting contract's timed up/down rounds moving: starts a
round when none is open, settles expired rounds with the reference price,
starts the next one and mirrors settled bets into the leaderboard store.

Each tick is stateless; run one tick per external trigger with --once, or
let the keeper tick periodically.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from .src.ChainlinkFeed import ChainlinkFeed
from .src.ContractUtility import ContractUtility
from .src.fetchers import BaseFetcher, get_available_fetchers, get_fetcher
from .src.LedgerClient import DEFAULT_BETTING_ADDRESS, LedgerClient
from .src.MirrorStore import MirrorStore
from .src.MirrorStoreSqlite import SqliteMirrorStore
from .src.MirrorStoreSupabase import SupabaseMirrorStore
from .src.MirrorSync import SettlementMirrorSync
from .src.PhaseTracker import PhaseTracker
from .src.PriceResolver import PriceResolver
from .src.RoundCoordinator import RoundCoordinator
from .src.TradingPair import TradingPair

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Chainlink ETH/USD aggregator on Base mainnet.
DEFAULT_PRICE_FEED_ADDRESS = "0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70"


def build_mirror_store(mirror_db: str | None, timeout: float) -> MirrorStore | None:
    """Select the mirror store from configuration.

    A SQLite path takes precedence over Supabase credentials.

    :param mirror_db: Optional SQLite database path.
    :param timeout: Request timeout for remote stores.
    :returns: Configured store, or None if mirroring is disabled.
    """
    if mirror_db:
        return SqliteMirrorStore(mirror_db)

    supabase_url = os.environ.get("SUPABASE_URL")
    supabase_key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
    if supabase_url and supabase_key:
        return SupabaseMirrorStore(supabase_url, supabase_key, timeout=timeout)

    return None


async def run(
    coordinator: RoundCoordinator,
    period: int,
    once: bool,
    tracker: PhaseTracker,
    store: MirrorStore | None = None,
) -> int:
    """Run ticks until interrupted (or a single tick with ``once``).

    :returns: Process exit status.
    """
    try:
        while True:
            try:
                result = await coordinator.run_tick()
            except Exception as e:
                logger.exception(f"Tick crashed: {e}")
                if once:
                    return 1
                await asyncio.sleep(period)
                continue

            logger.info(f"Tick complete: {json.dumps(result.to_dict())}")

            if result.snapshot is not None:
                phase = tracker.update(result.snapshot.seconds_remaining)
                if phase is not None:
                    logger.info(f"Round {result.snapshot.round_id} phase: {phase.value}")

            if once:
                return 0 if result.success else 1

            await asyncio.sleep(period)
    finally:
        await BaseFetcher.close_shared_client()
        if store is not None:
            await store.close()


def main() -> None:
    """Main entry point for the round keeper CLI."""
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Bloom Round Keeper: start and settle timed betting rounds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available fallback price sources:
  {', '.join(available_sources)}

Examples:
  # Tick every 15 seconds against Base mainnet
  ORACLE_PRIVATE_KEY=... python -m keeper.main

  # One tick from a cron job or webhook, mirroring into SQLite
  ORACLE_PRIVATE_KEY=... python -m keeper.main --once --mirror-db /data/bets.db

Environment variables (CLI args take precedence):
  RPC_URL, BETTING_ADDRESS, PRICE_FEED_ADDRESS, FALLBACK_SOURCE, PAIR,
  MAX_PRICE_AGE, FETCH_TIMEOUT, RPC_TIMEOUT, CONFIRM_TIMEOUT, TICK_PERIOD,
  MIRROR_DB, SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, ORACLE_PRIVATE_KEY
""",
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="RPC URL or network name (base, base-sepolia, localnet)",
        default=os.environ.get("RPC_URL") or "base",
    )

    parser.add_argument(
        "--betting-address",
        dest="betting_address",
        type=str,
        help="Address of the BloomBetting contract",
        default=os.environ.get("BETTING_ADDRESS") or DEFAULT_BETTING_ADDRESS,
    )

    parser.add_argument(
        "--price-feed-address",
        dest="price_feed_address",
        type=str,
        help="Address of the Chainlink aggregator used as primary price feed",
        default=os.environ.get("PRICE_FEED_ADDRESS") or DEFAULT_PRICE_FEED_ADDRESS,
    )

    parser.add_argument(
        "--fallback-source",
        dest="fallback_source",
        type=str,
        help=f"Spot source used when the primary price is unchanged "
        f"(available: {', '.join(available_sources)}; 'none' disables)",
        default=os.environ.get("FALLBACK_SOURCE") or "coinbase",
    )

    parser.add_argument(
        "--pair",
        type=str,
        help="Trading pair the rounds are played on (default: eth/usd)",
        default=os.environ.get("PAIR") or "eth/usd",
    )

    parser.add_argument(
        "--max-price-age",
        dest="max_price_age",
        type=int,
        help="Max age of the primary feed answer in seconds (default: 3600, 0 to disable)",
        default=int(os.environ.get("MAX_PRICE_AGE") or "3600"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for price feed requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--rpc-timeout",
        dest="rpc_timeout",
        type=float,
        help="Timeout for each RPC request in seconds (default: 30.0)",
        default=float(os.environ.get("RPC_TIMEOUT") or "30.0"),
    )

    parser.add_argument(
        "--confirm-timeout",
        dest="confirm_timeout",
        type=float,
        help="Seconds to wait for transaction confirmation (default: 120.0)",
        default=float(os.environ.get("CONFIRM_TIMEOUT") or "120.0"),
    )

    parser.add_argument(
        "--period",
        type=int,
        help="Seconds between ticks (minimum: 1, default: 15)",
        default=int(os.environ.get("TICK_PERIOD") or "15"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and exit (non-zero status if it failed)",
    )

    parser.add_argument(
        "--mirror-db",
        dest="mirror_db",
        type=str,
        help="SQLite file for the settled-bet mirror (overrides Supabase)",
        default=os.environ.get("MIRROR_DB"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.period < 1:
        parser.error("--period must be at least 1 second")

    if args.fetch_timeout <= 0 or args.rpc_timeout <= 0 or args.confirm_timeout <= 0:
        parser.error("Timeouts must be positive")

    fallback_source = args.fallback_source.strip().lower()
    if fallback_source != "none" and fallback_source not in available_sources:
        parser.error(
            f"Unknown fallback source: {fallback_source}. "
            f"Available: {', '.join(available_sources)}"
        )

    try:
        pair = TradingPair.from_string(args.pair)
    except ValueError as e:
        parser.error(str(e))

    private_key = os.environ.get("ORACLE_PRIVATE_KEY")
    if not private_key:
        parser.error("ORACLE_PRIVATE_KEY is not configured")

    max_price_age = args.max_price_age if args.max_price_age > 0 else None

    # Log configuration
    logger.info("=" * 60)
    logger.info("Bloom Round Keeper")
    logger.info("=" * 60)
    logger.info(f"RPC:               {args.rpc_url}")
    logger.info(f"Betting Contract:  {args.betting_address}")
    logger.info(f"Price Feed:        {args.price_feed_address}")
    logger.info(f"Pair:              {pair}")
    logger.info(f"Fallback Source:   {fallback_source}")
    logger.info(f"Max Price Age:     {max_price_age}s" if max_price_age else "Max Price Age:     disabled")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    logger.info(f"Confirm Timeout:   {args.confirm_timeout}s")
    logger.info("Mode:              once" if args.once else f"Tick Period:       {args.period}s")
    logger.info("=" * 60)

    try:
        contract_utility = ContractUtility(
            args.rpc_url, private_key=private_key, rpc_timeout=args.rpc_timeout
        )
        logger.info(f"Keeper account:    {contract_utility.account.address}")

        ledger = LedgerClient(
            contract_utility.w3,
            address=args.betting_address,
            confirm_timeout=args.confirm_timeout,
        )
        resolver = PriceResolver(
            primary=ChainlinkFeed(contract_utility.w3, args.price_feed_address),
            pair=pair,
            fallback=None if fallback_source == "none" else get_fetcher(
                fallback_source, timeout=args.fetch_timeout
            ),
            max_age=max_price_age,
            fetch_timeout=args.fetch_timeout,
        )

        store = build_mirror_store(args.mirror_db, args.fetch_timeout)
        if store is None:
            logger.warning("No mirror store configured, skipping settled-bet sync")
        mirror_sync = SettlementMirrorSync(ledger, store) if store else None

        coordinator = RoundCoordinator(ledger, resolver, mirror_sync=mirror_sync)
        tracker = PhaseTracker(ledger.betting_cutoff())

        status = asyncio.run(run(coordinator, args.period, args.once, tracker, store))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        status = 0
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    sys.exit(status)


if __name__ == "__main__":
    main()
