"""
Hyperliquid WebSocket + HTTP client with async orchestration.

Handles:
1. WebSocket subscription to the coin's trades stream
2. Periodic L2 snapshot polling over the info endpoint
3. Feeding both into the BookAggregator in arrival order
4. Pushing BookView records to a bounded queue for the UI

Polling is serialized: each fetch is awaited before the loop sleeps for the
rest of the interval, so a slow fetch delays the next tick instead of
overlapping with it.
"""

from __future__ import annotations

import asyncio
import logging
import time

import aiohttp
import orjson

from ..config import POLL_INTERVAL_MS
from ..engine.aggregator import BookAggregator
from ..errors import TransportClosed, TransportError
from ..types import BookView, Side

logger = logging.getLogger(__name__)

# Hyperliquid mainnet endpoints
INFO_URL = "https://api.hyperliquid.xyz/info"
WS_URL = "wss://api.hyperliquid.xyz/ws"


def json_loads(data: bytes | str) -> object:
    return orjson.loads(data)


class HyperliquidClient:
    """
    Async Hyperliquid client for the trades stream + L2 snapshots.

    Usage:
        client = HyperliquidClient(BookAggregator("BTC"))
        feed = asyncio.create_task(client.run())
        view = await client.view_queue.get()
    """

    def __init__(
        self,
        aggregator: BookAggregator,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        ws_url: str = WS_URL,
        info_url: str = INFO_URL,
        view_queue: asyncio.Queue[BookView] | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.poll_interval = poll_interval_ms / 1000
        self.ws_url = ws_url
        self.info_url = info_url

        self._running = False
        self._ws: aiohttp.ClientWebSocketResponse | None = None

        # Output queue for UI - drop oldest when full
        self.view_queue: asyncio.Queue[BookView] = (
            view_queue if view_queue is not None else asyncio.Queue(maxsize=5)
        )

        # Expired highlights change the view without any feed event
        aggregator.highlights.on_expire = self._on_highlight_expired

    @property
    def coin(self) -> str:
        return self.aggregator.coin

    def subscription_message(self) -> str:
        return orjson.dumps({
            "method": "subscribe",
            "subscription": {"type": "trades", "coin": self.coin},
        }).decode()

    async def fetch_snapshot(self, session: aiohttp.ClientSession) -> object:
        """Fetch the current L2 book for the active coin."""
        async with session.post(self.info_url, json={"type": "l2Book", "coin": self.coin}) as resp:
            resp.raise_for_status()
            data = await resp.read()
            return json_loads(data)

    async def _poll_snapshots(self, session: aiohttp.ClientSession) -> None:
        """Poll L2 snapshots until stopped. One fetch in flight at most."""
        while self._running:
            started = time.perf_counter()
            try:
                data = await self.fetch_snapshot(session)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("[POLL] Snapshot fetch failed: %s", e)
            except orjson.JSONDecodeError as e:
                logger.warning("[POLL] Snapshot body is not JSON: %s", e)
            else:
                if self.aggregator.apply_snapshot(data):
                    self.push_view()

            elapsed = time.perf_counter() - started
            await asyncio.sleep(max(0.0, self.poll_interval - elapsed))

    def handle_message(self, raw: str | bytes) -> None:
        """
        Handle one WebSocket frame.

        HOT PATH - called for every message.
        """
        try:
            data = json_loads(raw)
        except orjson.JSONDecodeError:
            self.aggregator.report_error("WebSocket message parse error")
            self.push_view()
            return

        if not isinstance(data, dict):
            self.aggregator.report_error("WebSocket message parse error")
            self.push_view()
            return

        # Subscription acks and pongs carry no trades
        payload = data.get('data')
        if data.get('channel') == 'trades' or isinstance(payload, list):
            self.aggregator.apply_trades(payload)

        if data.get('error'):
            self.aggregator.report_error(str(data['error']))

        self.push_view()

    def _on_highlight_expired(self, side: Side, price: float) -> None:
        self.push_view()

    def push_view(self) -> None:
        """Push the current BookView to the UI queue, dropping the oldest if full."""
        view = self.aggregator.view()
        try:
            self.view_queue.put_nowait(view)
        except asyncio.QueueFull:
            self.view_queue.get_nowait()
            self.view_queue.put_nowait(view)

    async def run(self) -> None:
        """
        Main run loop. Subscribes to trades and polls snapshots until stopped.

        Raises TransportClosed if the socket closes while running, and
        TransportError if it reports an error. The aggregator keeps its state
        (now stale) and is flagged as disconnected either way.
        """
        self._running = True

        async with aiohttp.ClientSession() as session:
            poll_task = asyncio.create_task(self._poll_snapshots(session))
            try:
                async with session.ws_connect(self.ws_url, heartbeat=30.0) as ws:
                    self._ws = ws
                    await ws.send_str(self.subscription_message())
                    self.aggregator.set_connected(True)
                    logger.info("[WS] Subscribed to %s trades", self.coin)
                    self.push_view()

                    async for msg in ws:
                        if not self._running:
                            break

                        if msg.type == aiohttp.WSMsgType.TEXT:
                            self.handle_message(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            raise TransportError(f"WebSocket error: {ws.exception()}")

                if self._running:
                    raise TransportClosed("WebSocket closed by remote")
            except aiohttp.ClientError as e:
                self.aggregator.report_error(f"WebSocket error: {e}")
                raise TransportError(f"WebSocket error: {e}") from e
            except TransportError as e:
                self.aggregator.report_error(str(e))
                raise
            finally:
                self._ws = None
                self._running = False
                self.aggregator.set_connected(False)
                poll_task.cancel()
                try:
                    await poll_task
                except asyncio.CancelledError:
                    pass
                self.push_view()

    async def stop(self) -> None:
        """Signal the client to stop and close the socket if open."""
        self._running = False
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
