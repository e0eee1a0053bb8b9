"""Shared fixtures: controllable clock, fake sockets, sample markets and books."""

from __future__ import annotations

import asyncio
from collections import namedtuple
from decimal import Decimal

import aiohttp
import orjson
import pytest

from poly_book.types import Frame, Market, OrderBook, PriceLevel

WSMsg = namedtuple("WSMsg", "type data")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWebSocket:
    """
    Stands in for aiohttp's ClientWebSocketResponse.

    Frames pushed with ``push`` are delivered in order; ``end`` makes the
    receive loop finish as if the server closed the connection.
    """

    def __init__(self, frames=(), *, hold: bool = True) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.close_code = 1006
        self._queue: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.push(frame)
        if not hold:
            self.end()

    def push(self, data) -> None:
        if not isinstance(data, (str, bytes)):
            data = orjson.dumps(data).decode()
        self._queue.put_nowait(WSMsg(aiohttp.WSMsgType.TEXT, data))

    def error(self) -> None:
        self._queue.put_nowait(WSMsg(aiohttp.WSMsgType.ERROR, None))

    def end(self) -> None:
        self._queue.put_nowait(None)

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    def subscriptions(self) -> list[dict]:
        return [orjson.loads(s) for s in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self):
        msg = await self._queue.get()
        if msg is None:
            raise StopAsyncIteration
        return msg

    def exception(self):
        return ConnectionResetError("boom")

    async def close(self) -> None:
        self.closed = True


class RecordingSink:
    def __init__(self) -> None:
        self.frames: list[tuple[Frame, int]] = []
        self.torn_down = 0

    def write(self, frame: Frame, previous_line_count: int) -> None:
        self.frames.append((frame, previous_line_count))

    def teardown(self) -> None:
        self.torn_down += 1


def level(price: str, size: str) -> PriceLevel:
    return PriceLevel(Decimal(price), Decimal(size))


def book(bids=(), asks=(), hash=None) -> OrderBook:
    return OrderBook(
        bids=tuple(level(p, s) for p, s in bids),
        asks=tuple(level(p, s) for p, s in asks),
        hash=hash,
    )


def make_market(
    id: str = "1",
    title: str = "Will it rain tomorrow?",
    description: str = "",
    volume: float = 100.0,
    tokens: tuple[str, ...] = ("T1", "T2"),
    outcomes: tuple[str, ...] = ("Yes", "No"),
    slug: str = "",
) -> Market:
    return Market(
        id=id,
        title=title,
        description=description,
        outcomes=outcomes,
        token_ids=tokens,
        volume_24h=volume,
        liquidity=0.0,
        slug=slug,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
