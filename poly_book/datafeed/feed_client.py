"""
Polymarket market-channel WebSocket client.

Handles:
1. One connection per process, shared by every subscription
2. Subscription message listing all active token ids on each (re)connect
3. Full book snapshots forwarded to the store, malformed frames dropped
4. Reconnection with capped exponential backoff + jitter

State machine:
    DISCONNECTED -> CONNECTING -> SUBSCRIBED -> DISCONNECTED (close/error)
                        ^                           |
                        +------- backoff sleep -----+

The socket factory and sleep are injected so the machine can be driven by
fake sockets in tests.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import Counter
from typing import Any, Awaitable, Callable, Iterable

import aiohttp

from .payloads import iter_message_items, json_dumps, json_loads, parse_book_message
from ..errors import ConnectionLost, MalformedMessage
from ..types import FeedState, OrderBook

logger = logging.getLogger(__name__)

Connect = Callable[[str], Awaitable[Any]]
OnBook = Callable[[str, OrderBook], None]
StateListener = Callable[[FeedState], None]


def ws_connector(session: aiohttp.ClientSession, heartbeat: float = 10.0) -> Connect:
    """Socket factory backed by an aiohttp session."""
    async def connect(url: str) -> aiohttp.ClientWebSocketResponse:
        return await session.ws_connect(url, heartbeat=heartbeat)
    return connect


class SubscriptionHandle:
    """Token ids held open on the feed until ``unsubscribe`` is called."""

    def __init__(self, client: FeedClient, token_ids: tuple[str, ...]) -> None:
        self._client = client
        self.token_ids = token_ids
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._client._release(self.token_ids)


class FeedClient:
    """
    Streaming book feed.

    Usage:
        feed = FeedClient(store.apply_snapshot, ws_connector(session), WS_URL)
        handle = feed.subscribe([yes_token, no_token])
        ...
        handle.unsubscribe()
        await feed.wait_idle()
    """

    def __init__(
        self,
        on_book: OnBook,
        connect: Connect,
        url: str,
        *,
        backoff_base: float = 1.0,
        backoff_cap: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._on_book = on_book
        self._connect = connect
        self._sleep = sleep
        self._rng = rng
        self._clock = clock

        # Ref-counted so two handles may share a token
        self._tokens: Counter[str] = Counter()
        self._state = FeedState.DISCONNECTED
        self._listeners: list[StateListener] = []
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Task | None = None
        self._ws: Any = None
        self._sends: set[asyncio.Task] = set()

        # Counters
        self.messages: int = 0
        self.dropped: int = 0
        self.last_message_at: float | None = None

    # ── Public API ───────────────────────────────────────────────────

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def token_ids(self) -> list[str]:
        return list(self._tokens)

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def subscribe(self, token_ids: Iterable[str]) -> SubscriptionHandle:
        """Add tokens to the active set, connecting if needed."""
        token_ids = tuple(dict.fromkeys(token_ids))
        self._tokens.update(token_ids)
        logger.info("Subscribe %s (active: %d)", list(token_ids), len(self._tokens))

        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(self._stopping), name="poly_book-feed")
        elif self._state is FeedState.SUBSCRIBED and self._ws is not None:
            self._spawn_send(self._ws)
        return SubscriptionHandle(self, token_ids)

    async def wait_idle(self) -> None:
        """Wait until the connection loop has fully stopped."""
        tasks = (self._task, self._stopping, *self._sends)
        pending = [t for t in tasks if t is not None and not t.done()]
        if pending:
            await asyncio.wait(pending)

    async def close(self) -> None:
        """Drop every subscription and stop. Used at process exit."""
        self._tokens.clear()
        self._stop()
        await self.wait_idle()

    # ── Internals ────────────────────────────────────────────────────

    def _release(self, token_ids: tuple[str, ...]) -> None:
        self._tokens.subtract(token_ids)
        self._tokens = +self._tokens  # Drop zero counts
        logger.info("Unsubscribe %s (active: %d)", list(token_ids), len(self._tokens))

        if not self._tokens:
            self._stop()
        elif self._state is FeedState.SUBSCRIBED and self._ws is not None:
            self._spawn_send(self._ws)

    def _stop(self) -> None:
        # Cancelling the loop also cancels a pending backoff sleep
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self._stopping = self._task
        self._task = None
        for task in self._sends:
            task.cancel()

    def _set_state(self, state: FeedState) -> None:
        if state is self._state:
            return
        logger.info("Feed %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in self._listeners:
            listener(state)

    def _subscription_message(self, token_ids: list[str] | None = None) -> str:
        if token_ids is None:
            token_ids = list(self._tokens)
        return json_dumps({"assets_ids": token_ids, "type": "book"})

    def _spawn_send(self, ws: Any) -> None:
        task = asyncio.create_task(self._resend(ws))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _resend(self, ws: Any) -> None:
        try:
            await ws.send_str(self._subscription_message())
        except (aiohttp.ClientError, ConnectionError) as e:
            # The receive loop will notice the dead socket and reconnect
            logger.warning("Resubscribe failed: %r", e)

    def backoff_delay(self, attempt: int) -> float:
        """Capped exponential delay with jitter in [delay/2, delay]."""
        delay = min(self.backoff_cap, self.backoff_base * (2 ** attempt))
        return delay * (0.5 + self._rng() / 2)

    async def _run(self, previous: asyncio.Task | None = None) -> None:
        """Connect, stream, and reconnect until no tokens remain."""
        if previous is not None and not previous.done():
            # Let the old loop close its socket first
            await asyncio.wait({previous})

        attempt = 0
        try:
            while self._tokens:
                self._set_state(FeedState.CONNECTING)
                try:
                    ws = await self._connect(self.url)
                except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                    logger.warning("Feed connect failed: %r", e)
                else:
                    try:
                        await self._stream(ws)
                    except ConnectionLost as e:
                        logger.warning("Feed connection lost: %s", e)
                    # A session that got as far as subscribing resets the backoff
                    attempt = 0 if self._state is FeedState.SUBSCRIBED else attempt

                self._set_state(FeedState.DISCONNECTED)
                if not self._tokens:
                    break

                delay = self.backoff_delay(attempt)
                attempt += 1
                logger.info("Reconnecting in %.1fs (attempt %d)", delay, attempt)
                await self._sleep(delay)
        finally:
            self._set_state(FeedState.DISCONNECTED)

    async def _stream(self, ws: Any) -> None:
        """One connection's lifetime: subscribe, then pump messages until it ends."""
        self._ws = ws
        try:
            sent = list(self._tokens)
            await ws.send_str(self._subscription_message(sent))
            # Tokens added or released during the handshake send
            while sent != list(self._tokens):
                sent = list(self._tokens)
                await ws.send_str(self._subscription_message(sent))
            self._set_state(FeedState.SUBSCRIBED)

            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise ConnectionLost(f"socket error: {ws.exception()!r}")

            logger.warning(
                "Feed closed by server (code=%s) after %d messages, last %s",
                getattr(ws, "close_code", None), self.messages, self._last_message_age(),
            )
        except (aiohttp.ClientError, ConnectionError) as e:
            raise ConnectionLost(repr(e)) from e
        finally:
            self._ws = None
            await ws.close()

    def _last_message_age(self) -> str:
        if self.last_message_at is None:
            return "never"
        return f"{self._clock() - self.last_message_at:.1f}s ago"

    def _handle_message(self, raw: str | bytes) -> None:
        """
        Forward each book snapshot in a frame to the store.

        HOT PATH - called for every frame. Never raises on bad input.
        """
        self.messages += 1
        self.last_message_at = self._clock()
        try:
            payload = json_loads(raw)
        except MalformedMessage as e:
            self.dropped += 1
            logger.debug("Dropped frame: %s", e)
            return

        for item in iter_message_items(payload):
            try:
                token_id, book = parse_book_message(item)
            except MalformedMessage as e:
                self.dropped += 1
                logger.debug("Dropped update: %s", e)
                continue
            if token_id in self._tokens:
                self._on_book(token_id, book)
