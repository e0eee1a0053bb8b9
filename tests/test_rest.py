"""REST client against a local aiohttp server."""

import asyncio
from decimal import Decimal

import aiohttp
import pytest
from aiohttp import test_utils, web

from poly_book.datafeed.rest import PolymarketRest
from poly_book.errors import TransientFetchError

BOOKS = {
    "T1": {
        "market": "0xabc",
        "asset_id": "T1",
        "bids": [{"price": "0.44", "size": "50"}, {"price": "0.45", "size": "100"}],
        "asks": [{"price": "0.55", "size": "80"}],
        "hash": "0x01",
    },
    "EMPTY": {"asset_id": "EMPTY"},
}

MARKETS = [
    {
        "id": "1",
        "question": "Will it rain tomorrow?",
        "outcomes": '["Yes", "No"]',
        "clobTokenIds": '["T1", "T2"]',
        "volume24hr": 1200.5,
    },
    {"id": "2", "question": "Broken", "clobTokenIds": '["T3"]'},
]

EVENT = {
    "slug": "fed-decision",
    "title": "Fed decision in December",
    "description": "Event description",
    "markets": [
        {"id": "10", "question": "No change?", "clobTokenIds": '["A1", "A2"]', "volume24hr": "300"},
        {"id": "11", "question": "25 bps cut?", "clobTokenIds": '["B1", "B2"]', "volume24hr": "9000"},
        {"id": "12", "question": "Dead", "clobTokenIds": "[]", "volume24hr": "99999"},
    ],
}


async def markets_handler(request):
    request.app["params"].append(dict(request.query))
    return web.json_response(MARKETS)


async def events_handler(request):
    if request.query.get("slug") == EVENT["slug"]:
        return web.json_response([EVENT])
    return web.json_response([])


async def book_handler(request):
    token = request.query.get("token_id")
    if token == "BROKEN":
        return web.Response(status=500, text="internal error")
    if token == "JUNK":
        return web.Response(text="<html>not json</html>")
    if token == "SLOW":
        await asyncio.sleep(0.5)
    if token not in BOOKS:
        return web.json_response({"error": "No orderbook exists for the requested token id"}, status=404)
    return web.json_response(BOOKS[token])


@pytest.fixture
async def server():
    app = web.Application()
    app["params"] = []
    app.router.add_get("/gamma/markets", markets_handler)
    app.router.add_get("/gamma/events", events_handler)
    app.router.add_get("/clob/book", book_handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
async def rest(server):
    async with aiohttp.ClientSession() as session:
        yield PolymarketRest(session, str(server.make_url("/gamma")), str(server.make_url("/clob")), timeout=0.2)


class TestCatalogEndpoints:

    async def test_fetch_markets(self, rest, server):
        markets = await rest.fetch_markets(limit=5)

        assert [m.id for m in markets] == ["1"]
        assert markets[0].token_ids == ("T1", "T2")
        assert markets[0].volume_24h == 1200.5
        assert server.app["params"] == [{
            "active": "true", "closed": "false", "order": "volume24hr", "ascending": "false", "limit": "5",
        }]

    async def test_event_resolves_to_busiest_market(self, rest):
        market = await rest.fetch_event_market("fed-decision")

        assert market.id == "11"
        assert market.token_ids == ("B1", "B2")
        assert market.description == "Event description"

    async def test_unknown_event(self, rest):
        assert await rest.fetch_event_market("nope") is None


class TestBookEndpoint:

    async def test_fetch_book(self, rest):
        book = await rest.fetch_book("T1")

        assert book.hash == "0x01"
        assert [level.price for level in book.bids] == [Decimal("0.44"), Decimal("0.45")]
        assert book.asks[0].size == Decimal("80")

    async def test_missing_sides_are_empty(self, rest):
        book = await rest.fetch_book("EMPTY")

        assert book.bids == () and book.asks == ()

    async def test_404_is_absent(self, rest):
        assert await rest.fetch_book("UNKNOWN") is None

    @pytest.mark.parametrize("token", ["BROKEN", "JUNK", "SLOW"])
    async def test_failures_are_transient(self, rest, token):
        with pytest.raises(TransientFetchError):
            await rest.fetch_book(token)

    async def test_connection_refused_is_transient(self):
        async with aiohttp.ClientSession() as session:
            rest = PolymarketRest(session, "http://127.0.0.1:1", "http://127.0.0.1:1", timeout=1.0)

            with pytest.raises(TransientFetchError):
                await rest.fetch_book("T1")
