"""
Latest-cycle market snapshot.

The polling loop is the only writer: it builds a new immutable
``MarketSnapshot`` at the end of each cycle and swaps it in with
``SnapshotStore.publish``. Readers (HTTP handlers, new WebSocket clients)
only ever see a complete cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .opportunity import ArbitrageOpportunity, Quote
from .utils import japan_now


@dataclass(frozen=True)
class MarketSnapshot:
    """Quotes and ranked opportunities of one completed cycle"""
    quotes: Tuple[Quote, ...] = ()
    opportunities: Tuple[ArbitrageOpportunity, ...] = ()
    updated_at: Optional[datetime] = None
    cycle: int = 0

    def to_dict(self) -> dict:
        return {
            "prices": [q.to_dict() for q in self.quotes],
            "opportunities": [o.to_dict() for o in self.opportunities],
            "timestamp": (self.updated_at or japan_now()).isoformat(),
        }


class SnapshotStore:
    """Holds the current snapshot; replaced wholesale, never mutated"""

    def __init__(self):
        self._current = MarketSnapshot()

    @property
    def current(self) -> MarketSnapshot:
        return self._current

    def publish(self, quotes, opportunities, updated_at: Optional[datetime] = None) -> MarketSnapshot:
        snapshot = MarketSnapshot(
            quotes=tuple(quotes),
            opportunities=tuple(opportunities),
            updated_at=updated_at or japan_now(),
            cycle=self._current.cycle + 1,
        )
        self._current = snapshot
        return snapshot

    def age_seconds(self) -> Optional[float]:
        """Seconds since the last publish, None before the first cycle"""
        if self._current.updated_at is None:
            return None
        return (japan_now() - self._current.updated_at).total_seconds()
