"""Order book store: ordering, wholesale replacement, bootstrap races."""

import asyncio
from decimal import Decimal

import pytest

from conftest import FakeClock, book
from poly_book.datafeed.orderbook import OrderBookStore, sort_book
from poly_book.errors import TransientFetchError


def store_with(books=None, clock=None):
    books = books or {}

    async def fetch(token_id):
        return books.get(token_id)

    return OrderBookStore(fetch, clock=clock or FakeClock())


class TestOrdering:

    def test_sort_book(self):
        unsorted = book(bids=[("0.40", "1"), ("0.45", "1"), ("0.42", "1")],
                        asks=[("0.60", "1"), ("0.55", "1"), ("0.58", "1")])

        result = sort_book(unsorted)

        assert [str(l.price) for l in result.bids] == ["0.45", "0.42", "0.40"]
        assert [str(l.price) for l in result.asks] == ["0.55", "0.58", "0.60"]

    def test_snapshot_stored_sorted(self):
        store = store_with()

        store.apply_snapshot("T1", book(bids=[("0.1", "5"), ("0.3", "5")], asks=[("0.9", "5"), ("0.7", "5")]))

        stored = store.get("T1")
        assert stored.best_bid == Decimal("0.3")
        assert stored.best_ask == Decimal("0.7")

    def test_round_trip_keeps_levels(self):
        store = store_with()
        snapshot = book(bids=[("0.45", "100"), ("0.44", "50")], asks=[("0.55", "80")], hash="h1")

        store.apply_snapshot("T1", snapshot)

        assert store.get("T1") == snapshot


class TestReplacement:

    def test_snapshot_replaces_not_merges(self):
        store = store_with()
        store.apply_snapshot("T1", book(bids=[("0.45", "100"), ("0.44", "50")], asks=[("0.55", "80")]))

        store.apply_snapshot("T1", book(bids=[("0.46", "10")], asks=[]))

        stored = store.get("T1")
        assert [str(l.price) for l in stored.bids] == ["0.46"]
        assert stored.asks == ()

    def test_absent_versus_empty(self):
        store = store_with()
        store.apply_snapshot("EMPTY", book())

        assert store.get("NEVER") is None
        assert store.get("EMPTY") is not None
        assert store.get("EMPTY").best_bid is None

    def test_tokens_are_independent(self):
        store = store_with()
        store.apply_snapshot("T1", book(bids=[("0.45", "1")]))
        store.apply_snapshot("T2", book(bids=[("0.55", "1")]))

        assert store.get("T1").best_bid == Decimal("0.45")
        assert store.get("T2").best_bid == Decimal("0.55")

    def test_updated_at_and_count(self):
        clock = FakeClock()
        store = store_with(clock=clock)

        store.apply_snapshot("T1", book())
        clock.advance(2.5)
        store.apply_snapshot("T1", book())

        assert store.updated_at("T1") == 1002.5
        assert store.updated_at("T2") is None
        assert store.update_count == 2

    def test_discard(self):
        store = store_with()
        store.apply_snapshot("T1", book())
        store.apply_snapshot("T2", book())

        store.discard(["T1", "MISSING"])

        assert store.get("T1") is None
        assert store.updated_at("T1") is None
        assert store.get("T2") is not None


class TestBootstrap:

    async def test_bootstrap_stores_rest_book(self):
        store = store_with({"T1": book(bids=[("0.45", "100")], asks=[("0.55", "80")])})

        result = await store.bootstrap("T1")

        assert result.best_bid == Decimal("0.45")
        assert store.get("T1").best_bid == Decimal("0.45")
        assert store.get("T1").best_ask == Decimal("0.55")

    async def test_missing_book_is_none(self):
        store = store_with()

        assert await store.bootstrap("GONE") is None
        assert store.get("GONE") is None

    async def test_transient_failure_leaves_store_untouched(self):
        async def fetch(token_id):
            raise TransientFetchError("clob down")

        store = OrderBookStore(fetch, clock=FakeClock())
        store.apply_snapshot("T1", book(bids=[("0.45", "1")]))

        with pytest.raises(TransientFetchError):
            await store.bootstrap("T1")

        assert store.get("T1").best_bid == Decimal("0.45")
        assert store.update_count == 1

    async def test_snapshot_during_bootstrap_wins(self):
        release = asyncio.Event()

        async def slow_fetch(token_id):
            await release.wait()
            return book(bids=[("0.30", "1")])

        store = OrderBookStore(slow_fetch, clock=FakeClock())
        task = asyncio.create_task(store.bootstrap("T1"))
        await asyncio.sleep(0)

        store.apply_snapshot("T1", book(bids=[("0.50", "1")]))
        release.set()
        result = await task

        assert result.best_bid == Decimal("0.50")
        assert store.get("T1").best_bid == Decimal("0.50")
