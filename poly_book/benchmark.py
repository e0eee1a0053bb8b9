#!/usr/bin/env python3
"""
Micro-benchmark for poly_book performance.

Tests:
1. Feed frame parsing throughput (JSON -> Decimal levels)
2. Store snapshot replacement throughput
3. Render tick speed (compose + diff + frame)
4. Catalog fuzzy search latency

Usage:
    python -m poly_book.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

from .datafeed.orderbook import OrderBookStore
from .datafeed.payloads import json_dumps, json_loads, parse_book_message
from .engine.scheduler import RenderScheduler
from .engine.search import SearchWeights, fuzzy_search
from .types import FeedState, Frame, Market

WORDS = (
    "bitcoin ethereum election senate fed rates recession nba finals champion "
    "president trump world cup inflation oscars spacex launch price above below"
).split()


def generate_mock_book(asset_id: str, levels: int = 50) -> dict:
    """Generate a mock book snapshot frame item (shuffled, as the feed may send it)."""
    mid = random.uniform(0.2, 0.8)
    bids = [
        {"price": f"{max(0.001, mid - (i + 1) * 0.01):.3f}", "size": f"{random.uniform(1, 5000):.2f}"}
        for i in range(levels)
    ]
    asks = [
        {"price": f"{min(0.999, mid + (i + 1) * 0.01):.3f}", "size": f"{random.uniform(1, 5000):.2f}"}
        for i in range(levels)
    ]
    random.shuffle(bids)
    random.shuffle(asks)
    return {"asset_id": asset_id, "bids": bids, "asks": asks, "hash": "0x0"}


def generate_mock_markets(count: int = 200) -> list[Market]:
    markets = []
    for i in range(count):
        title = " ".join(random.sample(WORDS, 5)).capitalize() + "?"
        description = " ".join(random.choices(WORDS, k=60))
        markets.append(Market(
            id=str(i),
            title=title,
            description=description,
            outcomes=("Yes", "No"),
            token_ids=(f"{i}-yes", f"{i}-no"),
            volume_24h=random.uniform(0, 1_000_000),
            liquidity=random.uniform(0, 100_000),
        ))
    return markets


class NullSink:
    def write(self, frame: Frame, previous_line_count: int) -> None:
        pass

    def teardown(self) -> None:
        pass


async def _no_fetch(token_id: str) -> None:
    return None


def benchmark_parse(iterations: int = 2000) -> float:
    """Benchmark feed frame parsing."""
    print("\n=== Feed Parse Benchmark ===")

    frames = [json_dumps([generate_mock_book("A"), generate_mock_book("B")]) for _ in range(50)]

    start = time.perf_counter()
    for i in range(iterations):
        for item in json_loads(frames[i % len(frames)]):
            parse_book_message(item)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Frames parsed: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} frames/sec")
    print(f"  Per frame: {elapsed/iterations*1_000_000:.1f}µs")
    return rate


def benchmark_store(iterations: int = 5000) -> float:
    """Benchmark snapshot replacement (includes re-sorting both sides)."""
    print("\n=== Store Snapshot Benchmark ===")

    store = OrderBookStore(_no_fetch)
    books = [parse_book_message(generate_mock_book("A"))[1] for _ in range(50)]

    start = time.perf_counter()
    for i in range(iterations):
        store.apply_snapshot("A", books[i % len(books)])
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Snapshots applied: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} snapshots/sec")
    return rate


def benchmark_tick(iterations: int = 500) -> float:
    """Benchmark one full render tick (what the 100ms budget must cover)."""
    print("\n=== Render Tick Benchmark ===")

    store = OrderBookStore(_no_fetch)
    books = [parse_book_message(generate_mock_book("A"))[1] for _ in range(20)]
    scheduler = RenderScheduler(
        "Benchmark market", [("Yes", "A"), ("No", "B")], store,
        lambda: FeedState.SUBSCRIBED, NullSink(),
    )

    times = []
    for i in range(iterations):
        store.apply_snapshot("A", books[i % len(books)])
        store.apply_snapshot("B", books[(i + 7) % len(books)])
        start = time.perf_counter()
        scheduler.tick(i * 0.1)
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Max FPS possible: {1000/avg_time:,.0f}")
    return avg_time


def benchmark_search(iterations: int = 20) -> float:
    """Benchmark fuzzy search over a full catalog page."""
    print("\n=== Fuzzy Search Benchmark ===")

    markets = generate_mock_markets()
    queries = ["bitcon", "fed rates", "world cup", "presdent trump", "xyzzy"]
    weights = SearchWeights()

    times = []
    for i in range(iterations):
        start = time.perf_counter()
        fuzzy_search(queries[i % len(queries)], markets, weights, 30)
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    return avg_time


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("poly_book Performance Benchmark")
    print("=" * 60)

    benchmark_parse()
    benchmark_store()
    benchmark_tick()
    benchmark_search()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
