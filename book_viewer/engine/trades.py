"""
Recent trades tape.

HOT PATH: merge() is called for every trade batch from the WebSocket.

Bounded, most-recent-first list of trades. Two ways in:
- extend(): plain prepend + truncate, for a single trusted stream
- merge(): dedup by trade hash (latest timestamp wins), for batches that may
  overlap after network retries or resubscription
"""

from __future__ import annotations

from collections import deque
from typing import Iterable

from ..config import TRADE_CAP
from ..types import RawTrade, TradeRecord


class TradeFeed:
    """
    Bounded trade tape, newest first.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    __slots__ = ('cap', '_trades')

    def __init__(self, cap: int = TRADE_CAP) -> None:
        self.cap = cap
        # Index 0 is the newest trade; appendleft drops from the old end
        self._trades: deque[RawTrade] = deque(maxlen=cap)

    def extend(self, trades: Iterable[RawTrade]) -> None:
        """Prepend a batch (batch order kept) and drop anything past the cap."""
        for trade in reversed(list(trades)):
            self._trades.appendleft(trade)

    def merge(self, trades: Iterable[RawTrade]) -> None:
        """
        Merge a batch, keeping one trade per hash.

        For a repeated hash the instance with the greatest timestamp survives
        (first seen wins a tie). The result is re-sorted newest first; the sort
        is stable, so equal timestamps keep batch-before-existing order.
        """
        unique: dict[str, RawTrade] = {}
        for trade in (*trades, *self._trades):
            seen = unique.get(trade.hash)
            if seen is None or trade.timestamp_ms > seen.timestamp_ms:
                unique[trade.hash] = trade

        ordered = sorted(unique.values(), key=lambda t: t.timestamp_ms, reverse=True)
        self._trades = deque(ordered[:self.cap], maxlen=self.cap)

    def records(self) -> list[TradeRecord]:
        """Display form of the tape, newest first."""
        return [
            TradeRecord(t.price, t.size, t.side, t.timestamp_ms)
            for t in self._trades
        ]

    def latest(self) -> RawTrade | None:
        return self._trades[0] if self._trades else None

    def clear(self) -> None:
        self._trades.clear()

    def __len__(self) -> int:
        return len(self._trades)
