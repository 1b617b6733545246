#!/usr/bin/env python3
"""
Micro-benchmark for Book Viewer performance.

Tests:
1. Snapshot load throughput (bucketing + merge)
2. Trade batch throughput (upsert + change detection + tape merge)
3. View build speed (project + pad + spread)

Usage:
    python -m book_viewer.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

from .engine.aggregator import BookAggregator


def generate_mock_snapshot(coin: str = "BTC", base_price: float = 104200.0, levels: int = 20) -> dict:
    """Generate a mock L2 snapshot in the info endpoint's shape."""
    tick_size = 1.0

    bids = []
    asks = []

    for i in range(levels):
        bids.append({
            'px': str(base_price - (i + 1) * tick_size),
            'sz': f"{random.uniform(0.01, 5):.5f}",
            'n': random.randint(1, 20),
        })
        asks.append({
            'px': str(base_price + (i + 1) * tick_size),
            'sz': f"{random.uniform(0.01, 5):.5f}",
            'n': random.randint(1, 20),
        })

    return {'coin': coin, 'time': int(time.time() * 1000), 'levels': [bids, asks]}


def generate_mock_trades(coin: str, base_price: float, start_tid: int, count: int = 10) -> list[dict]:
    """Generate a mock trades batch in the WebSocket's shape."""
    now_ms = int(time.time() * 1000)
    return [
        {
            'px': f"{base_price + random.uniform(-20, 20):.1f}",
            'sz': f"{random.uniform(0.001, 2):.5f}",
            'side': random.choice("BA"),
            'coin': coin,
            'hash': f"0x{start_tid + i:064x}",
            'tid': start_tid + i,
            'time': now_ms + i,
        }
        for i in range(count)
    ]


def _report(times: list[float], label: str) -> None:
    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0
    print(f"  Iterations: {len(times)}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Rate: {1000/avg_time:,.0f} {label}/sec" if avg_time > 0 else "  Rate: n/a")


def benchmark_snapshot_load(iterations: int = 1000, grouping: int = 10) -> None:
    """Benchmark L2 snapshot load throughput."""
    print("\n=== Snapshot Load Benchmark ===")

    agg = BookAggregator("BTC", grouping=grouping)
    snapshots = [generate_mock_snapshot(levels=20) for _ in range(iterations)]

    times = []
    for snap in snapshots:
        start = time.perf_counter()
        agg.apply_snapshot(snap)
        times.append(time.perf_counter() - start)

    _report(times, "snapshots")


def benchmark_trade_batches(iterations: int = 5000, batch_size: int = 10) -> None:
    """Benchmark trade batch processing."""
    print("\n=== Trade Batch Benchmark ===")

    agg = BookAggregator("BTC", grouping=1)
    batches = [
        generate_mock_trades("BTC", 104200.0, i * batch_size, batch_size)
        for i in range(iterations)
    ]

    start = time.perf_counter()
    for batch in batches:
        agg.apply_trades(batch)
    elapsed = time.perf_counter() - start

    trades = iterations * batch_size
    print(f"  Trades processed: {trades:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {trades / elapsed:,.0f} trades/sec")
    print(f"  Per batch: {elapsed/iterations*1_000_000:.1f}µs")


def benchmark_view_build(iterations: int = 1000) -> None:
    """Benchmark full view generation (what the UI needs)."""
    print("\n=== View Build Benchmark ===")

    agg = BookAggregator("BTC", grouping=1)
    agg.apply_snapshot(generate_mock_snapshot(levels=200))
    agg.apply_trades(generate_mock_trades("BTC", 104200.0, 0, 30))

    # Warm up
    for _ in range(10):
        agg.view()

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        agg.view()
        times.append(time.perf_counter() - start)

    _report(times, "views")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Book Viewer Performance Benchmark")
    print("=" * 60)

    benchmark_snapshot_load()
    benchmark_trade_batches()
    benchmark_view_build()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
