"""
Static configuration for Book Viewer.

Values mirror what the UI offers; anything user-selectable is validated here
so the engine can assume sane inputs.
"""

from __future__ import annotations

from .errors import ConfigError

GROUPING_OPTIONS: tuple[int, ...] = (1, 10, 20, 50, 100, 1000, 10000)
DEFAULT_GROUPING = 1

COIN_OPTIONS: tuple[str, ...] = ("BTC", "ETH", "SOL")
DEFAULT_COIN = "BTC"

NUM_ENTRIES = 11               # Rows per side in the ladder
HIGHLIGHT_DURATION_MS = 700    # How long a changed level stays highlighted
POLL_INTERVAL_MS = 1000        # L2 snapshot poll cadence
TRADE_CAP = 30                 # Trades kept on the tape

# Anchor prices for padding an empty side (no real levels to extrapolate from)
ASK_FALLBACK_PRICE = 104205.0
BID_FALLBACK_PRICE = 104195.0


def validate_grouping(grouping: float) -> float:
    """Return grouping as float, or raise ConfigError if it is not an allowed unit."""
    if isinstance(grouping, bool) or grouping not in GROUPING_OPTIONS:
        raise ConfigError(
            f"Invalid grouping {grouping!r}; expected one of {GROUPING_OPTIONS}"
        )
    return float(grouping)


def validate_coin(coin: str) -> str:
    """Return the normalized coin symbol, or raise ConfigError."""
    symbol = str(coin).upper()
    if symbol not in COIN_OPTIONS:
        raise ConfigError(f"Invalid coin {coin!r}; expected one of {COIN_OPTIONS}")
    return symbol
