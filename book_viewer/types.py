"""
Data types for Book Viewer.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- These are the UI-facing data structures; the book store hot path uses raw dicts
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class Side(str, Enum):
    """Book side. Values match the feed's side codes."""
    BID = "B"
    ASK = "A"


class PriceLevel(NamedTuple):
    """Single grouped price level on one side of the book."""
    price: float   # Grouped price key
    size: float    # Resting size at this key (>= 0)
    total: float   # Cumulative size from the best price down to this level


class RawLevel(NamedTuple):
    """Snapshot level as delivered by the feed (decimal strings)."""
    price: str
    size: str
    count: int = 0


class RawTrade(NamedTuple):
    """Single trade from the trade stream. Identity is `hash`."""
    price: str
    size: str
    side: Side
    coin: str
    hash: str
    tid: int
    timestamp_ms: int


class TradeRecord(NamedTuple):
    """Display form of a trade for the tape."""
    price: str
    size: str
    side: Side
    timestamp_ms: int


class Spread(NamedTuple):
    value: float
    percentage: str  # Formatted with 3 decimals, e.g. "0.012"


class BookView(NamedTuple):
    """
    Complete book view for UI rendering.

    Pushed to the UI queue after every applied update.
    """
    coin: str
    grouping: float
    bids: list[PriceLevel]           # Best bid first, exactly NUM_ENTRIES
    asks: list[PriceLevel]           # Best ask first, exactly NUM_ENTRIES
    spread: Spread
    highlighted_bids: frozenset[float]
    highlighted_asks: frozenset[float]
    trades: list[TradeRecord]        # Most recent first
    connected: bool
    error: str | None
    timestamp_ms: int
