"""
Change detection and transient level highlighting.

A grouped price is "changed" when its size differs from the previously
committed size, or when the level did not exist before. Changed levels are
highlighted for a fixed duration and then cleared by a timer on the event loop.

Timers are keyed by (side, price). A newer change on the same key cancels the
pending handle and starts a fresh one, so a level that keeps changing stays lit.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Mapping

from ..config import HIGHLIGHT_DURATION_MS
from ..types import Side

logger = logging.getLogger(__name__)


def changed_prices(
    previous: Mapping[float, float],
    current: Mapping[float, float],
    candidates: Iterable[float] | None = None,
) -> frozenset[float]:
    """
    Return prices in `current` that are new or whose size differs from `previous`.

    Args:
        previous: Sizes before the update (must not alias `current`)
        current: Sizes after the update
        candidates: Restrict the check to these keys (e.g. keys touched by a
            trade batch). Defaults to every key in `current`.
    """
    keys = current.keys() if candidates is None else candidates
    changed = set()
    for price in keys:
        if price not in current:
            continue
        if price not in previous or previous[price] != current[price]:
            changed.add(price)
    return frozenset(changed)


class HighlightTracker:
    """
    Per-side set of recently changed prices with auto-expiry.

    Thread-safety: NOT thread-safe. Must be driven from the event loop thread.
    Without a running loop, marks persist until reset().
    """

    __slots__ = ('duration', 'on_expire', '_highlighted', '_timers')

    def __init__(
        self,
        duration: float = HIGHLIGHT_DURATION_MS / 1000,
        on_expire: Callable[[Side, float], None] | None = None,
    ) -> None:
        self.duration = duration
        # Called after an entry is cleared, so views can be re-rendered
        self.on_expire = on_expire
        self._highlighted: dict[Side, set[float]] = {Side.BID: set(), Side.ASK: set()}
        self._timers: dict[tuple[Side, float], asyncio.TimerHandle] = {}

    def mark(self, side: Side, prices: Iterable[float]) -> None:
        """Highlight `prices` on `side` and (re)start their expiry timers."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for price in prices:
            self._highlighted[side].add(price)
            if loop is None:
                continue

            key = (side, price)
            pending = self._timers.pop(key, None)
            if pending is not None:
                pending.cancel()
            self._timers[key] = loop.call_later(self.duration, self._expire, side, price)

    def _expire(self, side: Side, price: float) -> None:
        self._timers.pop((side, price), None)
        # discard(): the level may already be gone after a reset
        self._highlighted[side].discard(price)
        if self.on_expire is not None:
            self.on_expire(side, price)

    def highlighted(self, side: Side) -> frozenset[float]:
        return frozenset(self._highlighted[side])

    def is_highlighted(self, side: Side, price: float) -> bool:
        return price in self._highlighted[side]

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def reset(self) -> None:
        """Cancel every pending expiry and clear both sides."""
        if self._timers:
            logger.debug("Cancelling %d pending highlight timers", len(self._timers))
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for prices in self._highlighted.values():
            prices.clear()
