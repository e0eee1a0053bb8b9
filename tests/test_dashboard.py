"""Dashboard lifecycle: bootstrap, subscribe, render, teardown."""

import asyncio
from decimal import Decimal

import pytest

from conftest import FakeWebSocket, RecordingSink, book, make_market
from poly_book.config import DashboardConfig
from poly_book.dashboard import Dashboard, select_outcomes
from poly_book.datafeed.feed_client import FeedClient
from poly_book.datafeed.orderbook import OrderBookStore
from poly_book.errors import TransientFetchError, UnresolvableMarket
from poly_book.types import FeedState

CONFIG = DashboardConfig(tick_interval=0.001, backoff_base=0.0)


class UntilSink(RecordingSink):
    """Stops the dashboard once a frame satisfies ``predicate``."""

    def __init__(self, stop, predicate):
        super().__init__()
        self.stop = stop
        self.predicate = predicate

    def write(self, frame, previous_line_count):
        super().write(frame, previous_line_count)
        if self.predicate(frame):
            self.stop.set()


def plain(frame):
    return "\n".join(line.plain for line in frame.lines)


def make_parts(books, sockets):
    async def fetch_book(token_id):
        return books.get(token_id)

    async def connect(url):
        return sockets.pop(0)

    store = OrderBookStore(fetch_book)
    feed = FeedClient(store.apply_snapshot, connect, "wss://feed.test")
    return store, feed


class TestSelectOutcomes:

    def test_both_outcomes_by_default(self):
        assert select_outcomes(make_market()) == [("Yes", "T1"), ("No", "T2")]

    def test_single_outcome(self):
        assert select_outcomes(make_market(), outcome=1) == [("No", "T2")]

    def test_too_few_tokens(self):
        with pytest.raises(UnresolvableMarket):
            select_outcomes(make_market(tokens=("T1",), outcomes=("Yes",)))

    def test_bad_outcome_index(self):
        with pytest.raises(UnresolvableMarket):
            select_outcomes(make_market(), outcome=2)

    def test_single_view_is_deeper(self):
        store, feed = make_parts({}, [])

        dual = Dashboard(make_market(), store, feed, RecordingSink(), CONFIG)
        single = Dashboard(make_market(), store, feed, RecordingSink(), CONFIG, outcome=0)

        assert dual.scheduler.depth == 12
        assert single.scheduler.depth == 15


class TestLifecycle:

    async def test_bootstrap_feed_and_teardown(self):
        ws = FakeWebSocket()
        store, feed = make_parts({"T1": book(bids=[("0.45", "100")], asks=[("0.55", "80")])}, [ws])
        stop = asyncio.Event()
        sink = UntilSink(stop, lambda frame: "46.0%" in plain(frame) and "No resting orders" in plain(frame))
        dashboard = Dashboard(make_market(), store, feed, sink, CONFIG)

        async def stream_update():
            while store.get("T1") is None:
                await asyncio.sleep(0.001)
            ws.push({"asset_id": "T1", "bids": [{"price": "0.46", "size": "10"}], "asks": []})

        pusher = asyncio.create_task(stream_update())
        await asyncio.wait_for(dashboard.run(stop), timeout=5)
        await pusher

        assert ws.subscriptions()[0] == {"assets_ids": ["T1", "T2"], "type": "book"}
        assert ws.closed
        assert feed.state is FeedState.DISCONNECTED
        assert store.get("T1") is None
        assert len(dashboard.scheduler.detector) == 0
        assert sink.torn_down == 1

    async def test_teardown_runs_when_render_fails(self):
        store, feed = make_parts({}, [FakeWebSocket()])

        class BrokenSink(RecordingSink):
            def write(self, frame, previous_line_count):
                raise OSError("terminal gone")

        sink = BrokenSink()
        dashboard = Dashboard(make_market(), store, feed, sink, CONFIG)

        with pytest.raises(OSError):
            await dashboard.run(asyncio.Event())

        assert sink.torn_down == 1
        assert feed.token_ids == []
        assert feed.state is FeedState.DISCONNECTED

    async def test_bootstrap_retries_transient_failures(self):
        calls = []

        async def flaky_fetch(token_id):
            calls.append(token_id)
            if len(calls) == 1:
                raise TransientFetchError("timeout")
            return book(bids=[("0.45", "1")])

        store = OrderBookStore(flaky_fetch)
        feed = FeedClient(store.apply_snapshot, None, "wss://feed.test")
        dashboard = Dashboard(make_market(), store, feed, RecordingSink(), CONFIG)

        await dashboard._bootstrap("T1")

        assert calls == ["T1", "T1"]
        assert store.get("T1").best_bid == Decimal("0.45")

    async def test_missing_book_marked(self):
        store, feed = make_parts({}, [])
        dashboard = Dashboard(make_market(), store, feed, RecordingSink(), CONFIG)

        await dashboard._bootstrap("T2")

        view = dashboard.scheduler.compose(0.0)
        assert view.outcomes[1].status.value == "no_book"
        assert view.outcomes[0].status.value == "connecting"
