"""
Core data structures shared by the detection engine, storage and API.
"""

from .opportunity import ArbitrageOpportunity, FeeBreakdown, Quote
from .snapshot import MarketSnapshot, SnapshotStore
from .utils import JST, format_jpy, japan_now

__all__ = [
    "ArbitrageOpportunity",
    "FeeBreakdown",
    "Quote",
    "MarketSnapshot",
    "SnapshotStore",
    "JST",
    "format_jpy",
    "japan_now",
]
