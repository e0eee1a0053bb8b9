"""
Dashboard lifecycle for one market.

Entry:  REST bootstrap per outcome token (in the background), feed
        subscription, render loop.
Exit:   stop ticking, unsubscribe (closing the socket once nothing else is
        subscribed), cancel bootstrap retries, drop the market's books.

Every exit path runs the full teardown so nothing leaks across market
switches.
"""

from __future__ import annotations

import asyncio
import logging

from .config import DashboardConfig
from .datafeed.feed_client import FeedClient
from .datafeed.orderbook import OrderBookStore
from .engine.flash import ChangeDetector, FlashTracker
from .engine.scheduler import FrameSink, RenderScheduler
from .errors import TransientFetchError, UnresolvableMarket
from .types import Market

logger = logging.getLogger(__name__)


def select_outcomes(market: Market, outcome: int | None = None) -> list[tuple[str, str]]:
    """
    (name, token_id) pairs to display.

    Both outcomes by default, or just ``outcome`` for the single-book view.
    """
    if len(market.token_ids) < 2:
        raise UnresolvableMarket(f"{market.title}: not enough outcomes for a dashboard")

    pairs = list(zip(market.outcomes, market.token_ids))
    if outcome is None:
        return pairs[:2]
    if not 0 <= outcome < len(pairs):
        raise UnresolvableMarket(f"{market.title}: no outcome #{outcome} (has {len(pairs)})")
    return [pairs[outcome]]


class Dashboard:
    """Runs one market's live view until the stop event fires."""

    def __init__(
        self,
        market: Market,
        store: OrderBookStore,
        feed: FeedClient,
        sink: FrameSink,
        config: DashboardConfig,
        outcome: int | None = None,
    ) -> None:
        self.market = market
        self.outcomes = select_outcomes(market, outcome)
        self.token_ids = [token_id for _, token_id in self.outcomes]

        self._store = store
        self._feed = feed
        self._sink = sink
        self._config = config
        self._missing: set[str] = set()

        depth = config.single_depth if len(self.outcomes) == 1 else config.dual_depth
        self.scheduler = RenderScheduler(
            market.title,
            self.outcomes,
            store,
            lambda: feed.state,
            sink,
            depth=depth,
            bar_width=config.bar_width,
            interval=config.tick_interval,
            detector=ChangeDetector(config.epsilon),
            tracker=FlashTracker(config.flash_duration),
            missing=self._missing.__contains__,
        )

    async def _bootstrap(self, token_id: str) -> None:
        """Seed the store over REST; the feed takes over afterwards."""
        for attempt in range(self._config.bootstrap_attempts):
            try:
                book = await self._store.bootstrap(token_id)
            except TransientFetchError as e:
                delay = self._config.backoff_base * (2 ** attempt)
                logger.warning("Bootstrap %s failed (%s), retrying in %.0fs", token_id, e, delay)
                await asyncio.sleep(delay)
                continue
            if book is None:
                self._missing.add(token_id)
            return
        logger.warning("Bootstrap %s gave up, waiting on the feed", token_id)

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("Dashboard start: %s (%s)", self.market.title, self.market.id)
        bootstraps = [asyncio.create_task(self._bootstrap(t)) for t in self.token_ids]
        handle = self._feed.subscribe(self.token_ids)
        try:
            await self.scheduler.run(stop)
        finally:
            handle.unsubscribe()
            for task in bootstraps:
                task.cancel()
            await asyncio.wait(bootstraps)
            if not self._feed.token_ids:
                await self._feed.wait_idle()
            self._store.discard(self.token_ids)
            self.scheduler.detector.forget(self.token_ids)
            self.scheduler.tracker.clear()
            self._sink.teardown()
            logger.info("Dashboard stop: %s", self.market.id)
