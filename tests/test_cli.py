import pytest

from book_viewer import benchmark
from book_viewer.config import validate_coin, validate_grouping
from book_viewer.errors import ConfigError
from book_viewer.main import build_parser


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.coin == "BTC"
    assert args.grouping == 1
    assert args.log_file is None


def test_parser_accepts_known_values():
    args = build_parser().parse_args(["SOL", "--grouping", "100", "--log-level", "DEBUG"])
    assert args.coin == "SOL"
    assert args.grouping == 100


@pytest.mark.parametrize("argv", [["DOGE"], ["--grouping", "7"]])
def test_parser_rejects_unknown_values(argv):
    with pytest.raises(SystemExit):
        build_parser().parse_args(argv)


def test_validators():
    assert validate_grouping(10) == 10.0
    assert validate_coin("sol") == "SOL"
    with pytest.raises(ConfigError):
        validate_grouping(True)
    with pytest.raises(ValueError):
        validate_coin("XRP")


def test_benchmarks_run(capsys):
    benchmark.benchmark_snapshot_load(iterations=5)
    benchmark.benchmark_trade_batches(iterations=5, batch_size=3)
    benchmark.benchmark_view_build(iterations=5)
    out = capsys.readouterr().out
    assert "Snapshot Load" in out
    assert "View Build" in out


def test_feed_runner_grouping_switch_pushes_fresh_view():
    import asyncio

    from book_viewer.main import FeedRunner

    async def scenario():
        runner = FeedRunner("BTC", 1)
        runner.aggregator.apply_trades([{
            "px": "100", "sz": "1", "side": "B", "coin": "BTC",
            "hash": "0x1", "tid": 1, "time": 1,
        }])
        await runner.set_grouping(10)
        view = runner.view_queue.get_nowait()
        await runner.close()
        return view, runner.aggregator.highlights.pending_timers

    view, pending = asyncio.run(scenario())
    assert view.grouping == 10
    assert all(l.size == 0 for l in view.bids)
    assert pending == 0


async def _wait_until(predicate, timeout=5.0):
    import asyncio

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.01)


def test_feed_runner_coin_switch_tears_down_old_feed():
    import asyncio

    import orjson
    from aiohttp import web
    from aiohttp.test_utils import TestServer

    from book_viewer.main import FeedRunner

    subscriptions = []

    async def ws_handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        async for msg in ws:
            sub = orjson.loads(msg.data)
            subscriptions.append(sub)
            coin = sub["subscription"]["coin"]
            if coin == "BTC":
                await ws.send_str(orjson.dumps({"channel": "trades", "data": [{
                    "coin": "BTC", "side": "B", "px": "104200", "sz": "0.5",
                    "hash": "0x1", "time": 1_700_000_000_000, "tid": 1,
                }]}).decode())
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
            runner = FeedRunner(
                "BTC", 1,
                ws_url=str(server.make_url("/ws")),
                info_url=str(server.make_url("/info")),
            )
            runner.start()
            await _wait_until(lambda: len(runner.aggregator.trades) == 1)
            runner.aggregator.report_error("stale feed")

            before = {
                "pending": runner.aggregator.highlights.pending_timers,
                "connected": runner.aggregator.connected,
            }
            old_task = runner._task
            old_client = runner.client

            await runner.set_coin("ETH")

            after = {
                "old_task_done": old_task.done(),
                "old_ws_closed": old_client._ws is None,
                "pending": runner.aggregator.highlights.pending_timers,
                "book_empty": runner.aggregator.store.is_empty(),
                "tape": len(runner.aggregator.trades),
                "error": runner.aggregator.error,
            }
            views = []
            while not runner.view_queue.empty():
                views.append(runner.view_queue.get_nowait())

            await _wait_until(lambda: len(subscriptions) == 2)

            await runner.close()
            closed = {
                "task": runner._task,
                "pending": runner.aggregator.highlights.pending_timers,
                "connected": runner.aggregator.connected,
            }
            return before, after, views, closed
        finally:
            await server.close()

    before, after, views, closed = asyncio.run(scenario())

    assert before["pending"] > 0
    assert before["connected"]

    assert after == {
        "old_task_done": True,
        "old_ws_closed": True,
        "pending": 0,
        "book_empty": True,
        "tape": 0,
        "error": None,
    }
    assert views[-1].coin == "ETH"
    assert views[-1].trades == []
    assert all(l.size == 0 for l in views[-1].bids + views[-1].asks)

    assert [s["subscription"]["coin"] for s in subscriptions] == ["BTC", "ETH"]

    assert closed == {"task": None, "pending": 0, "connected": False}
