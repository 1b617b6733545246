"""
Book aggregation engine.

Single writer for the book store, highlight tracker and trade tape. The
transport feeds it decoded-or-raw payloads in arrival order; the UI pulls
BookView records from it.

Malformed input never escapes from here: bad snapshots are logged and
skipped, bad trade batches are surfaced through `error`. In both cases the
previous state is kept.
"""

from __future__ import annotations

import logging
import time

from ..config import (
    DEFAULT_COIN,
    DEFAULT_GROUPING,
    HIGHLIGHT_DURATION_MS,
    NUM_ENTRIES,
    TRADE_CAP,
    validate_coin,
    validate_grouping,
)
from ..datafeed.messages import parse_snapshot, parse_trades
from ..datafeed.orderbook import BookChanges, BookStore
from ..errors import MalformedMessage, MalformedSnapshot
from ..types import BookView, RawTrade, Side
from .highlights import HighlightTracker
from .ladder import calculate_spread, fill_to_fixed_length, project_side
from .trades import TradeFeed

logger = logging.getLogger(__name__)


class BookAggregator:
    """
    Order book + trade tape state for one coin at one grouping.

    Usage:
        agg = BookAggregator(coin="BTC", grouping=10)
        agg.apply_snapshot(l2_book_payload)
        agg.apply_trades(trades_payload)
        view = agg.view()

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    def __init__(
        self,
        coin: str = DEFAULT_COIN,
        grouping: float = DEFAULT_GROUPING,
        num_entries: int = NUM_ENTRIES,
        highlight_duration: float = HIGHLIGHT_DURATION_MS / 1000,
        trade_cap: int = TRADE_CAP,
    ) -> None:
        self.coin = validate_coin(coin)
        self.num_entries = num_entries

        self.store = BookStore(validate_grouping(grouping))
        self.highlights = HighlightTracker(highlight_duration)
        self.trades = TradeFeed(trade_cap)

        self.connected: bool = False
        self.error: str | None = None

    @property
    def grouping(self) -> float:
        return self.store.grouping

    def _mark(self, changes: BookChanges) -> None:
        self.highlights.mark(Side.BID, changes.bids)
        self.highlights.mark(Side.ASK, changes.asks)

    def apply_trades(self, payload: object) -> bool:
        """
        Apply a trade batch (list of raw dicts or RawTrade records).

        Trades go onto the tape (deduplicated by hash) and are upserted into the
        book. Returns False if the batch was rejected.
        """
        if isinstance(payload, list) and all(isinstance(t, RawTrade) for t in payload):
            trades = payload
        else:
            try:
                trades = parse_trades(payload)
            except MalformedMessage as e:
                logger.warning("[FEED] Dropping trade batch: %s", e)
                self.error = str(e)
                return False

        # Late frames from a previous subscription must not leak into this coin
        trades = [t for t in trades if t.coin == self.coin]
        if not trades:
            return True

        self.trades.merge(trades)
        self._mark(self.store.apply_trades(trades))
        return True

    def apply_snapshot(self, payload: object) -> bool:
        """Replace the book with an L2 snapshot. Returns False if it was skipped."""
        try:
            bids, asks = parse_snapshot(payload)
        except MalformedSnapshot as e:
            logger.warning("[POLL] Skipping malformed snapshot: %s", e)
            return False

        coin = payload.get('coin') if isinstance(payload, dict) else None
        if coin is not None and coin != self.coin:
            logger.debug("[POLL] Ignoring snapshot for %s (active coin %s)", coin, self.coin)
            return False

        self._mark(self.store.load_snapshot(bids, asks))
        return True

    def set_grouping(self, grouping: float) -> None:
        """Switch grouping. Book and highlights restart empty."""
        grouping = validate_grouping(grouping)
        self.highlights.reset()
        self.store.set_grouping(grouping)
        logger.info("Grouping changed to %g for %s", grouping, self.coin)

    def set_coin(self, coin: str) -> None:
        """Switch coin. Book, highlights and trade tape restart empty."""
        self.coin = validate_coin(coin)
        self.highlights.reset()
        self.store.clear()
        self.trades.clear()
        self.error = None
        logger.info("Coin changed to %s", self.coin)

    def set_connected(self, connected: bool) -> None:
        if connected and not self.connected:
            self.error = None
        self.connected = connected

    def report_error(self, message: str) -> None:
        logger.warning("[FEED] %s", message)
        self.error = message

    def view(self) -> BookView:
        """Build the padded two-sided ladder plus tape for rendering."""
        bids = fill_to_fixed_length(
            project_side(self.store.bids, Side.BID, self.num_entries),
            Side.BID, self.num_entries, self.grouping,
        )
        asks = fill_to_fixed_length(
            project_side(self.store.asks, Side.ASK, self.num_entries),
            Side.ASK, self.num_entries, self.grouping,
        )

        return BookView(
            coin=self.coin,
            grouping=self.grouping,
            bids=bids,
            asks=asks,
            spread=calculate_spread(asks, bids),
            highlighted_bids=self.highlights.highlighted(Side.BID),
            highlighted_asks=self.highlights.highlighted(Side.ASK),
            trades=self.trades.records(),
            connected=self.connected,
            error=self.error,
            timestamp_ms=int(time.time() * 1000),
        )

    def close(self) -> None:
        """Cancel pending highlight timers. Safe to call more than once."""
        self.highlights.reset()
