import asyncio

import orjson

from book_viewer.datafeed.hyperliquid_client import HyperliquidClient
from book_viewer.engine.aggregator import BookAggregator

TRADES_FRAME = {
    "channel": "trades",
    "data": [
        {"coin": "BTC", "side": "B", "px": "104200.5", "sz": "0.5",
         "hash": "0x1", "time": 1_700_000_000_000, "tid": 1},
    ],
}


def _client(**kwargs):
    return HyperliquidClient(BookAggregator("BTC", grouping=1), **kwargs)


def test_subscription_message():
    client = _client()
    assert orjson.loads(client.subscription_message()) == {
        "method": "subscribe",
        "subscription": {"type": "trades", "coin": "BTC"},
    }


def test_trades_frame_updates_book_and_pushes_view():
    client = _client()
    client.handle_message(orjson.dumps(TRADES_FRAME))

    view = client.view_queue.get_nowait()
    assert view.bids[0].price == 104200.0
    assert view.bids[0].size == 0.5
    assert len(view.trades) == 1


def test_unparsable_frame_surfaces_error():
    client = _client()
    client.handle_message("{not json")
    view = client.view_queue.get_nowait()
    assert view.error == "WebSocket message parse error"
    assert client.aggregator.store.is_empty()


def test_error_frame_surfaces_error():
    client = _client()
    client.handle_message(orjson.dumps({"channel": "error", "error": "Invalid subscription"}))
    assert client.view_queue.get_nowait().error == "Invalid subscription"


def test_subscription_ack_is_ignored():
    client = _client()
    client.handle_message(orjson.dumps({
        "channel": "subscriptionResponse",
        "data": {"method": "subscribe", "subscription": {"type": "trades", "coin": "BTC"}},
    }))
    view = client.view_queue.get_nowait()
    assert view.error is None
    assert view.trades == []


def test_highlight_expiry_pushes_fresh_view():
    async def scenario():
        client = HyperliquidClient(BookAggregator("BTC", grouping=1, highlight_duration=0.01))
        client.handle_message(orjson.dumps(TRADES_FRAME))
        lit = client.view_queue.get_nowait()
        assert client.view_queue.empty()

        await asyncio.sleep(0.1)

        views = []
        while not client.view_queue.empty():
            views.append(client.view_queue.get_nowait())
        return lit, views

    lit, views = asyncio.run(scenario())
    assert lit.highlighted_bids == {104200.0}
    assert len(views) == 1
    assert views[-1].highlighted_bids == frozenset()
    assert views[-1].bids[0].price == 104200.0


def test_view_queue_drops_oldest_when_full():
    client = _client()
    for _ in range(8):
        client.push_view()
    assert client.view_queue.qsize() == client.view_queue.maxsize


def test_poll_loop_never_overlaps_fetches():
    client = _client(poll_interval_ms=10)
    stats = {"in_flight": 0, "max_in_flight": 0, "calls": 0}

    async def slow_fetch(session):
        stats["in_flight"] += 1
        stats["calls"] += 1
        stats["max_in_flight"] = max(stats["max_in_flight"], stats["in_flight"])
        # Slower than the poll interval
        await asyncio.sleep(0.03)
        stats["in_flight"] -= 1
        return {"coin": "BTC", "levels": [[{"px": "100", "sz": "1", "n": 1}], []]}

    client.fetch_snapshot = slow_fetch

    async def scenario():
        client._running = True
        task = asyncio.create_task(client._poll_snapshots(None))
        await asyncio.sleep(0.2)
        client._running = False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())

    assert stats["calls"] >= 2
    assert stats["max_in_flight"] == 1
    assert client.aggregator.store.bids == {100.0: 1.0}


def test_poll_loop_survives_malformed_snapshot():
    client = _client(poll_interval_ms=10)
    calls = []

    async def fetch(session):
        calls.append(1)
        return {"coin": "BTC"}

    client.fetch_snapshot = fetch

    async def scenario():
        client._running = True
        task = asyncio.create_task(client._poll_snapshots(None))
        await asyncio.sleep(0.08)
        client._running = False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())
    assert len(calls) >= 2
    assert client.aggregator.store.is_empty()


def test_run_against_local_server_reports_remote_close():
    from aiohttp import web
    from aiohttp.test_utils import TestServer

    from book_viewer.errors import TransportClosed

    received = []

    async def ws_handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        msg = await ws.receive()
        received.append(orjson.loads(msg.data))
        await ws.send_str(orjson.dumps(TRADES_FRAME).decode())
        await ws.close()
        return ws

    async def info_handler(request):
        body = await request.json()
        return web.json_response({
            "coin": body["coin"],
            "time": 1,
            "levels": [[{"px": "104100", "sz": "1", "n": 1}], [{"px": "104300", "sz": "2", "n": 1}]],
        })

    app = web.Application()
    app.router.add_get("/ws", ws_handler)
    app.router.add_post("/info", info_handler)

    async def scenario():
        server = TestServer(app)
        await server.start_server()
        try:
            client = _client(ws_url=str(server.make_url("/ws")), info_url=str(server.make_url("/info")))
            try:
                await asyncio.wait_for(client.run(), timeout=5.0)
            except TransportClosed as e:
                return client, e
            return client, None
        finally:
            await server.close()

    client, error = asyncio.run(scenario())

    assert isinstance(error, TransportClosed)
    assert received == [{"method": "subscribe", "subscription": {"type": "trades", "coin": "BTC"}}]
    view = client.aggregator.view()
    assert not view.connected
    assert view.error == "WebSocket closed by remote"
    assert [t.price for t in view.trades] == ["104200.5"]
