"""
Grouped local order book for Hyperliquid perpetuals.

HOT PATH: apply_trades() is called for every trade batch from the WebSocket,
load_snapshot() once per poll with the full L2 book.

Performance strategy:
1. Use dict[float, float] for O(1) lookup/update of grouped prices
2. Bucket prices on the way in so the store never holds raw prices
3. Leave sorting and cumulation to the projector (only done when a view is built)
4. Clone only the sides an update touches before diffing
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple

from ..engine.highlights import changed_prices
from ..types import RawLevel, RawTrade, Side

logger = logging.getLogger(__name__)


def bucket_price(price: float, grouping: float) -> float:
    """Map a raw price onto its grouping bucket (floor). HOT PATH."""
    return (price // grouping) * grouping


class BookChanges(NamedTuple):
    """Grouped prices whose size changed (or that appeared) in one update."""
    bids: frozenset[float]
    asks: frozenset[float]

    def for_side(self, side: Side) -> frozenset[float]:
        return self.bids if side is Side.BID else self.asks

    def __bool__(self) -> bool:
        return bool(self.bids or self.asks)


NO_CHANGES = BookChanges(frozenset(), frozenset())


class BookStore:
    """
    Two-sided grouped book: trade-driven upserts + snapshot-driven replacement.

    Thread-safety: NOT thread-safe. Single writer on the event loop.
    """

    __slots__ = ('grouping', 'bids', 'asks')

    def __init__(self, grouping: float = 1.0) -> None:
        self.grouping = grouping

        # Core data: grouped price -> size
        self.bids: dict[float, float] = {}
        self.asks: dict[float, float] = {}

    def side(self, side: Side) -> dict[float, float]:
        """Live map for `side`. Callers must not keep it across updates."""
        return self.bids if side is Side.BID else self.asks

    def sizes(self, side: Side) -> dict[float, float]:
        """Copy of the sizes on `side`, safe to diff against after mutation."""
        return dict(self.side(side))

    def apply_trades(self, trades: Iterable[RawTrade]) -> BookChanges:
        """
        Upsert each trade's grouped price with the trade size.

        HOT PATH - called for every trade batch.

        Existing keys are overwritten, missing keys inserted. Levels are never
        removed here; a zero size stays until the next snapshot or reset.
        """
        previous: dict[Side, dict[float, float]] = {}
        touched: dict[Side, set[float]] = {Side.BID: set(), Side.ASK: set()}

        for trade in trades:
            levels = self.side(trade.side)
            if trade.side not in previous:
                previous[trade.side] = dict(levels)

            price = bucket_price(float(trade.price), self.grouping)
            levels[price] = float(trade.size)
            touched[trade.side].add(price)

        if not previous:
            return NO_CHANGES

        return BookChanges(
            bids=changed_prices(previous.get(Side.BID, {}), self.bids, touched[Side.BID]),
            asks=changed_prices(previous.get(Side.ASK, {}), self.asks, touched[Side.ASK]),
        )

    def _group_levels(self, levels: Iterable[RawLevel]) -> dict[float, float]:
        grouped: dict[float, float] = {}
        for level in levels:
            price = bucket_price(float(level.price), self.grouping)
            # Several raw levels can collapse into one bucket
            grouped[price] = grouped.get(price, 0.0) + float(level.size)
        return grouped

    def load_snapshot(self, bids: Iterable[RawLevel], asks: Iterable[RawLevel]) -> BookChanges:
        """
        Replace both sides with a freshly bucketed L2 snapshot.

        Both sides are built before either is swapped in, so a failure while
        grouping leaves the store untouched.
        """
        new_bids = self._group_levels(bids)
        new_asks = self._group_levels(asks)

        changes = BookChanges(
            bids=changed_prices(self.bids, new_bids),
            asks=changed_prices(self.asks, new_asks),
        )

        self.bids = new_bids
        self.asks = new_asks
        return changes

    def set_grouping(self, grouping: float) -> None:
        """Switch grouping unit. Existing buckets are meaningless, so the book is cleared."""
        self.grouping = grouping
        self.clear()
        logger.debug("Grouping set to %s, book cleared", grouping)

    def clear(self) -> None:
        self.bids = {}
        self.asks = {}

    def is_empty(self) -> bool:
        return not self.bids and not self.asks

