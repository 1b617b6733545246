"""
Decoding of raw Hyperliquid payloads into typed records.

Trades arrive as {px, sz, side, coin, hash, tid, time}; L2 snapshots as
{coin, time, levels: [[{px, sz, n}, ...], [{px, sz, n}, ...]]} with bids first.
Prices and sizes stay as decimal strings until the book store buckets them.
"""

from __future__ import annotations

import logging

from ..errors import MalformedMessage, MalformedSnapshot
from ..types import RawLevel, RawTrade, Side

logger = logging.getLogger(__name__)

SIDE_CODES = frozenset(side.value for side in Side)


def parse_trade(data: dict) -> RawTrade:
    """Decode one trade entry. Raises MalformedMessage on bad shape or values."""
    try:
        price, size = str(data['px']), str(data['sz'])
        # Validate numerics up front so the book store never sees garbage
        float(price), float(size)
        return RawTrade(
            price=price,
            size=size,
            side=Side(data['side']),
            coin=str(data['coin']),
            hash=str(data['hash']),
            tid=int(data['tid']),
            timestamp_ms=int(data['time']),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedMessage(f"Invalid trade entry {data!r}: {e}") from e


def parse_trades(payload: object) -> list[RawTrade]:
    """
    Decode a batch of trades.

    Entries with an unknown side code are skipped. Any other bad entry
    rejects the whole batch.
    """
    if not isinstance(payload, list):
        raise MalformedMessage(f"Expected a list of trades, got {type(payload).__name__}")

    trades: list[RawTrade] = []
    for item in payload:
        side = item.get('side') if isinstance(item, dict) else None
        if isinstance(side, str) and side not in SIDE_CODES:
            logger.debug("[WS] Skipping trade with side %r", side)
            continue
        trades.append(parse_trade(item))
    return trades


def _parse_side(levels: object, label: str) -> list[RawLevel]:
    if not isinstance(levels, list):
        raise MalformedSnapshot(f"{label} levels must be a list, got {type(levels).__name__}")

    result: list[RawLevel] = []
    for level in levels:
        try:
            price, size = str(level['px']), str(level['sz'])
            float(price), float(size)
            result.append(RawLevel(price, size, int(level.get('n', 0))))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedSnapshot(f"Invalid {label} level {level!r}: {e}") from e
    return result


def parse_snapshot(data: object) -> tuple[list[RawLevel], list[RawLevel]]:
    """
    Decode an L2 snapshot into (bids, asks).

    Raises MalformedSnapshot if `levels` is absent or is not a pair of lists.
    """
    if not isinstance(data, dict) or 'levels' not in data:
        raise MalformedSnapshot("Snapshot has no 'levels' field")

    levels = data['levels']
    if not isinstance(levels, (list, tuple)) or len(levels) != 2:
        raise MalformedSnapshot("Snapshot 'levels' must hold exactly [bids, asks]")

    return _parse_side(levels[0], "bid"), _parse_side(levels[1], "ask")
