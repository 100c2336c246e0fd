"""
Bloom Round Keeper - Round Lifecycle Module

This module keeps timed betting rounds moving on the betting contract:
- PriceResolver: Primary feed price with an unchanged-price fallback
- LedgerClient: Reads round state, sends start/settle transactions
- RoundCoordinator: One lifecycle step per stateless tick
- SettlementMirrorSync: Idempotent copy of settled bets into a mirror store
- PhaseTracker: Client-facing betting phase derived from time remaining
- fetchers: Spot price fetchers used as the fallback source
"""

from .Ledger import Ledger, LedgerError, TransactionFailed, TransactionRejected, TransactionTimeout
from .LedgerClient import LedgerClient
from .LedgerTypes import BetResult, Direction, Round, RoundState, TxResult, Wager
from .MirrorStore import MirrorRecord, MirrorStore, MirrorStoreError
from .MirrorSync import SettlementMirrorSync
from .PhaseTracker import Phase, PhaseTracker, derive_local_phase
from .PriceResolver import PriceResolver, PriceSource, PriceUnavailable, ResolvedPrice
from .RoundCoordinator import RoundCoordinator, TickResult
from .fixed_point import PRICE_DECIMALS

__all__ = [
    "BetResult",
    "Direction",
    "Ledger",
    "LedgerClient",
    "LedgerError",
    "MirrorRecord",
    "MirrorStore",
    "MirrorStoreError",
    "PRICE_DECIMALS",
    "Phase",
    "PhaseTracker",
    "PriceResolver",
    "PriceSource",
    "PriceUnavailable",
    "ResolvedPrice",
    "Round",
    "RoundCoordinator",
    "RoundState",
    "SettlementMirrorSync",
    "TickResult",
    "TransactionFailed",
    "TransactionRejected",
    "TransactionTimeout",
    "TxResult",
    "Wager",
    "derive_local_phase",
]
