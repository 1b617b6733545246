"""
Order book + trade tape TUI using Textual.

Displays:
- Left: Ladder with asks on top (worst to best), spread row, bids below
- Right: Recent trades tape
- Top: Coin, grouping, connection state and last feed error

Performance notes:
- Renders only when a new BookView arrives
- Highlight backgrounds come straight from the view's highlight sets
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from rich.console import RenderableType
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Footer, Static

from ..config import COIN_OPTIONS, GROUPING_OPTIONS
from ..types import Side

if TYPE_CHECKING:
    from ..types import BookView, PriceLevel, TradeRecord

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
BID_FLASH_BG = "#14532d"
ASK_FLASH_BG = "#7f1d1d"
SIZE_COLOR = "#d1d5db"
HEADER_COLOR = "#94a3b8"
SPREAD_BG = "#1e293b"


def format_time(timestamp_ms: int) -> str:
    """Format an epoch-ms timestamp as local HH:MM:SS."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")


def format_size(size: float) -> str:
    return f"{size:.5f}"


def format_price(price: float) -> str:
    return f"{price:.0f}"


def next_option(options: tuple, current) -> object:
    """Cycle to the option after `current` (wraps around)."""
    try:
        index = options.index(current)
    except ValueError:
        return options[0]
    return options[(index + 1) % len(options)]


class FeedControl(Protocol):
    view_queue: asyncio.Queue

    async def set_grouping(self, grouping: float) -> None: ...

    async def set_coin(self, coin: str) -> None: ...


class OrderBookTable(Static):
    """Ladder widget: asks reversed, spread, bids."""

    DEFAULT_CSS = """
    OrderBookTable {
        width: 2fr;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._view: BookView | None = None

    def update_view(self, view: BookView) -> None:
        self._view = view
        self.refresh()

    @staticmethod
    def _row(level: PriceLevel, color: str, flash_bg: str, highlighted: bool) -> tuple[Text, Text, Text]:
        bg = flash_bg if highlighted else None
        return (
            Text(format_price(level.price), style=Style(color=color, bgcolor=bg)),
            Text(format_size(level.size), style=Style(color=SIZE_COLOR, bgcolor=bg)),
            Text(format_size(level.total), style=Style(color=SIZE_COLOR, bgcolor=bg)),
        )

    def render(self) -> RenderableType:
        if self._view is None:
            return Text("Waiting for data...", style="dim")

        view = self._view
        table = Table(
            show_header=True,
            header_style=HEADER_COLOR,
            box=None,
            padding=(0, 1),
            collapse_padding=True,
            expand=True,
        )
        table.add_column("Price", justify="left")
        table.add_column(f"Size ({view.coin})", justify="right")
        table.add_column(f"Total ({view.coin})", justify="right")

        # Worst ask at the top, best ask just above the spread
        for level in reversed(view.asks):
            table.add_row(*self._row(
                level, ASK_COLOR, ASK_FLASH_BG, level.price in view.highlighted_asks,
            ))

        spread_style = Style(bgcolor=SPREAD_BG)
        table.add_row(
            Text("Spread", style=spread_style),
            Text(f"{view.spread.value:g}", style=spread_style),
            Text(f"{view.spread.percentage}%", style=spread_style),
        )

        for level in view.bids:
            table.add_row(*self._row(
                level, BID_COLOR, BID_FLASH_BG, level.price in view.highlighted_bids,
            ))

        return table


class TradesTable(Static):
    """Recent trades, newest first."""

    DEFAULT_CSS = """
    TradesTable {
        width: 1fr;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._trades: list[TradeRecord] = []

    def update_trades(self, trades: list[TradeRecord]) -> None:
        self._trades = trades
        self.refresh()

    def render(self) -> RenderableType:
        if not self._trades:
            return Text("No trades yet", style="dim")

        table = Table(show_header=True, header_style=HEADER_COLOR, box=None, padding=(0, 1), expand=True)
        table.add_column("Price", justify="left")
        table.add_column("Size", justify="right")
        table.add_column("Time", justify="right")

        for trade in self._trades:
            color = BID_COLOR if trade.side is Side.BID else ASK_COLOR
            table.add_row(
                Text(trade.price, style=color),
                Text(trade.size, style=SIZE_COLOR),
                Text(format_time(trade.timestamp_ms), style="dim"),
            )
        return table


class StatusBar(Static):
    """Status bar showing coin, grouping, connectivity and the last feed error."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._view: BookView | None = None

    def update_view(self, view: BookView) -> None:
        self._view = view
        self.refresh()

    def render(self) -> RenderableType:
        if self._view is None:
            return Text("Connecting...", style="dim")

        view = self._view
        result = Text()
        result.append(f" {view.coin} ", style="bold white on #1e40af")
        result.append("  Grouping: ", style="dim")
        result.append(f"{view.grouping:g}", style="cyan")
        result.append("  │  ", style="dim")
        if view.connected:
            result.append("● live", style=BID_COLOR)
        else:
            result.append("● stale", style=ASK_COLOR)
        if view.error:
            result.append("  │  ", style="dim")
            result.append(view.error, style="yellow")
        return result


class BookApp(App):
    """Main Book Viewer application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("g", "next_grouping", "Grouping"),
        ("c", "next_coin", "Coin"),
        ("t", "toggle_trades", "Trades"),
    ]

    def __init__(self, feed: FeedControl) -> None:
        super().__init__()
        self.feed = feed
        self._status_bar: StatusBar | None = None
        self._book_table: OrderBookTable | None = None
        self._trades_table: TradesTable | None = None
        self._last_view: BookView | None = None

    def compose(self) -> ComposeResult:
        self._status_bar = StatusBar()
        self._book_table = OrderBookTable()
        self._trades_table = TradesTable()

        yield self._status_bar
        yield Horizontal(self._book_table, self._trades_table, id="main-container")
        yield Footer()

    async def on_mount(self) -> None:
        """Start the view consumer task."""
        self.run_worker(self._consume_views(), exclusive=True)

    async def _consume_views(self) -> None:
        """Consume views from the queue and update UI."""
        while True:
            try:
                view = await asyncio.wait_for(self.feed.view_queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            self._last_view = view
            if self._status_bar:
                self._status_bar.update_view(view)
            if self._book_table:
                self._book_table.update_view(view)
            if self._trades_table:
                self._trades_table.update_trades(view.trades)

    async def action_next_grouping(self) -> None:
        current = int(self._last_view.grouping) if self._last_view else GROUPING_OPTIONS[0]
        await self.feed.set_grouping(next_option(GROUPING_OPTIONS, current))

    async def action_next_coin(self) -> None:
        current = self._last_view.coin if self._last_view else COIN_OPTIONS[0]
        await self.feed.set_coin(next_option(COIN_OPTIONS, current))

    def action_toggle_trades(self) -> None:
        if self._trades_table:
            self._trades_table.display = not self._trades_table.display


async def run_ui(feed: FeedControl) -> None:
    """Run the TUI application."""
    app = BookApp(feed)
    await app.run_async()
