#!/usr/bin/env python3
"""
Book Viewer - Live order book and trade tape for Hyperliquid perpetuals.

Usage:
    python -m book_viewer.main BTC --grouping 10

Controls:
    q - Quit
    g - Cycle price grouping
    c - Cycle coin
    t - Toggle trades tape
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import COIN_OPTIONS, DEFAULT_COIN, DEFAULT_GROUPING, GROUPING_OPTIONS
from .datafeed.hyperliquid_client import INFO_URL, WS_URL, HyperliquidClient
from .engine.aggregator import BookAggregator
from .errors import BookViewerError

logger = logging.getLogger(__name__)


class FeedRunner:
    """
    Owns the aggregator and the running client task.

    Coin switches tear the client down and start a fresh subscription; grouping
    switches only reset the book, since the trade stream does not depend on it.
    """

    def __init__(
        self,
        coin: str,
        grouping: float,
        ws_url: str = WS_URL,
        info_url: str = INFO_URL,
    ) -> None:
        self.ws_url = ws_url
        self.info_url = info_url
        self.aggregator = BookAggregator(coin=coin, grouping=grouping)
        self.view_queue: asyncio.Queue = asyncio.Queue(maxsize=5)
        self.client = self._new_client()
        self._task: asyncio.Task | None = None

    def _new_client(self) -> HyperliquidClient:
        return HyperliquidClient(
            self.aggregator,
            ws_url=self.ws_url,
            info_url=self.info_url,
            view_queue=self.view_queue,
        )

    async def _run_feed(self) -> None:
        try:
            await self.client.run()
        except BookViewerError as e:
            logger.error("[FEED] Feed stopped: %s", e)

    def start(self) -> None:
        self._task = asyncio.create_task(self._run_feed())

    async def stop(self) -> None:
        await self.client.stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def set_grouping(self, grouping: float) -> None:
        self.aggregator.set_grouping(grouping)
        self.client.push_view()

    async def set_coin(self, coin: str) -> None:
        await self.stop()
        self.aggregator.set_coin(coin)
        self.client = self._new_client()
        self.client.push_view()
        self.start()

    async def close(self) -> None:
        await self.stop()
        self.aggregator.close()


async def main(coin: str, grouping: int) -> None:
    """Main entry point - runs data feed and UI concurrently."""

    # Import here to avoid slow startup for --help
    from .ui.book_view import run_ui

    print(f"Starting Book Viewer for {coin}...")
    print(f"  Grouping: {grouping}")
    print()

    runner = FeedRunner(coin, grouping)
    runner.start()

    try:
        # Run UI (blocks until quit)
        await run_ui(runner)
    finally:
        await runner.close()


def configure_logging(level: str, log_file: str | None) -> None:
    """Route logs to a file when given, so they do not draw over the TUI."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=log_file,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Book Viewer - Live order book and trades for Hyperliquid",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m book_viewer.main BTC
    python -m book_viewer.main ETH --grouping 10
    python -m book_viewer.main SOL --log-file book.log --log-level DEBUG
        """
    )

    parser.add_argument(
        "coin",
        nargs="?",
        default=DEFAULT_COIN,
        choices=COIN_OPTIONS,
        help=f"Coin to display (default: {DEFAULT_COIN})"
    )

    parser.add_argument(
        "--grouping",
        type=int,
        default=DEFAULT_GROUPING,
        choices=GROUPING_OPTIONS,
        help=f"Price grouping unit (default: {DEFAULT_GROUPING})"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)"
    )

    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to this file instead of stderr"
    )

    return parser


def cli() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()
    configure_logging(args.log_level, args.log_file)

    try:
        asyncio.run(main(args.coin, args.grouping))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
