"""PhaseTracker: Betting phase derived from the ledger's time remaining.

The phase is recomputed from the latest authoritative reading on every
poll. The tracker only remembers the last phase it reported, so callers can
fire one-shot effects on transitions.

.. code-block:: python

    >>> derive_local_phase(45, cutoff=10)
    <Phase.BETTING: 'betting'>
    >>> derive_local_phase(10, cutoff=10)
    <Phase.LOCKED: 'locked'>
    >>> derive_local_phase(0, cutoff=10)
    <Phase.RESOLVING: 'resolving'>
"""

from __future__ import annotations

from enum import Enum

DEFAULT_BETTING_CUTOFF = 10


class Phase(str, Enum):
    """Phase of the current round as seen by a client."""

    BETTING = "betting"
    LOCKED = "locked"
    RESOLVING = "resolving"


def derive_local_phase(seconds_remaining: float, cutoff: int = DEFAULT_BETTING_CUTOFF) -> Phase:
    """Derive the phase from seconds remaining in the round.

    :param seconds_remaining: Ledger time remaining; negatives clamp to 0.
    :param cutoff: Betting cutoff in seconds before round end.
    :returns: RESOLVING at 0, LOCKED within the cutoff, BETTING otherwise.
    """
    remaining = max(0, int(seconds_remaining))
    if remaining == 0:
        return Phase.RESOLVING
    if remaining <= cutoff:
        return Phase.LOCKED
    return Phase.BETTING


def phase_time_left(seconds_remaining: float, cutoff: int = DEFAULT_BETTING_CUTOFF) -> int:
    """Seconds left in the current phase.

    :param seconds_remaining: Ledger time remaining.
    :param cutoff: Betting cutoff in seconds.
    :returns: Time until betting closes while betting, time until round
        end while locked, 0 while resolving.
    """
    remaining = max(0, int(seconds_remaining))
    phase = derive_local_phase(remaining, cutoff)
    if phase is Phase.BETTING:
        return max(remaining - cutoff, 0)
    if phase is Phase.LOCKED:
        return remaining
    return 0


class PhaseTracker:
    """Detects phase transitions across polls.

    :ivar cutoff: Betting cutoff in seconds.
    :ivar last_phase: Phase reported by the previous update, if any.
    """

    def __init__(self, cutoff: int = DEFAULT_BETTING_CUTOFF) -> None:
        self.cutoff = cutoff
        self.last_phase: Phase | None = None

    def update(self, seconds_remaining: float) -> Phase | None:
        """Record a new reading.

        :param seconds_remaining: Ledger time remaining.
        :returns: The new phase if it differs from the last one, else None.
        """
        phase = derive_local_phase(seconds_remaining, self.cutoff)
        if phase == self.last_phase:
            return None
        self.last_phase = phase
        return phase
