"""
Ladder construction: projection, padding and spread.

Turns the grouped book store into what the UI draws: per side, the best
`depth` levels with cumulative totals, always exactly NUM_ENTRIES rows long.

Canonical order: sort -> cumulate -> truncate -> pad -> spread.
"""

from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np

from ..config import ASK_FALLBACK_PRICE, BID_FALLBACK_PRICE
from ..types import PriceLevel, Side, Spread

EMPTY_SPREAD = Spread(0.0, "0.000")


def project_side(levels: Mapping[float, float], side: Side, depth: int) -> list[PriceLevel]:
    """
    Sort one side best-first and attach running totals.

    Totals are cumulated over the full sorted side, then the result is cut to
    the top `depth` levels.
    """
    if not levels:
        return []

    prices = sorted(levels, reverse=side is Side.BID)
    sizes = np.fromiter((levels[p] for p in prices), dtype=np.float64, count=len(prices))
    totals = np.cumsum(sizes)

    n = min(depth, len(prices))
    return [
        PriceLevel(prices[i], float(sizes[i]), float(totals[i]))
        for i in range(n)
    ]


def fill_to_fixed_length(
    levels: Sequence[PriceLevel],
    side: Side,
    num_entries: int,
    grouping: float,
) -> list[PriceLevel]:
    """
    Pad (or cut) a projected side to exactly `num_entries` rows.

    Synthetic rows continue away from the book (asks upward, bids downward)
    from the outermost real price, spaced by the observed step between the first
    two real levels, or by `grouping` when fewer than two exist. They carry
    size 0 and the previous row's total, so the cumulative column stays flat.
    """
    if len(levels) >= num_entries:
        return list(levels[:num_entries])

    is_ask = side is Side.ASK

    price_step = grouping
    if len(levels) >= 2:
        price_step = abs(levels[1].price - levels[0].price)

    if levels:
        edge = max(l.price for l in levels) if is_ask else min(l.price for l in levels)
    else:
        edge = ASK_FALLBACK_PRICE if is_ask else BID_FALLBACK_PRICE

    direction = 1.0 if is_ask else -1.0
    filled = list(levels)
    for n in range(1, num_entries - len(levels) + 1):
        total = filled[-1].total if filled else 0.0
        filled.append(PriceLevel(edge + direction * price_step * n, 0.0, total))

    return filled


def calculate_spread(asks: Sequence[PriceLevel], bids: Sequence[PriceLevel]) -> Spread:
    """Best ask minus best bid (floored at 0) and its percentage of the best ask."""
    if not asks or not bids:
        return EMPTY_SPREAD

    best_ask = asks[0].price
    best_bid = bids[0].price
    value = max(0.0, best_ask - best_bid)
    percentage = (value / best_ask * 100) if best_ask else 0.0
    return Spread(value, f"{percentage:.3f}")
