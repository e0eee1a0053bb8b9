"""
Fixed-rate render loop.

Each tick is one synchronous pass:
    gather books -> diff against last tick -> build view -> render frame -> emit

Ticks never overlap and are never queued: if the loop falls behind (a slow
terminal, a burst of feed messages) the missed ticks are skipped and the
next one renders current state.

Performance notes:
- A tick must stay well under the 100ms budget since it shares the event
  loop with the feed's message handler
- No I/O other than the final sink write
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Protocol, Sequence

from .flash import ChangeDetector, FlashTracker, flash
from .ladder import book_stats, depth_fills
from ..datafeed.orderbook import OrderBookStore
from ..types import (
    BookStatus, DashboardView, Direction, FeedState, FlashKey, Frame,
    LevelView, OutcomeView, PriceLevel,
)
from ..ui.frame import render_frame

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    """Presentation collaborator receiving one frame per tick."""

    def write(self, frame: Frame, previous_line_count: int) -> None: ...

    def teardown(self) -> None: ...


def _wall_clock() -> str:
    return datetime.now().strftime("%H:%M:%S")


class RenderScheduler:
    """
    Drives the dashboard at a fixed interval.

    Usage:
        scheduler = RenderScheduler(market.title, outcomes, store, lambda: feed.state, sink)
        await scheduler.run(stop_event)
    """

    def __init__(
        self,
        title: str,
        outcomes: Sequence[tuple[str, str]],  # (name, token_id)
        store: OrderBookStore,
        feed_state: Callable[[], FeedState],
        sink: FrameSink,
        *,
        depth: int = 12,
        bar_width: int = 8,
        interval: float = 0.1,
        detector: ChangeDetector | None = None,
        tracker: FlashTracker | None = None,
        missing: Callable[[str], bool] = lambda token_id: False,
        render: Callable[[DashboardView], Frame] = render_frame,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], str] = _wall_clock,
    ) -> None:
        self.title = title
        self.outcomes = tuple(outcomes)
        self.depth = depth
        self.bar_width = bar_width
        self.interval = interval
        self.detector = detector or ChangeDetector()
        self.tracker = tracker or FlashTracker()

        self._store = store
        self._feed_state = feed_state
        self._sink = sink
        self._missing = missing
        self._render = render
        self._clock = clock
        self._wall_clock = wall_clock

        # Lines written by the previous tick, for in-place overwrite
        self.last_line_count: int = 0
        self.ticks: int = 0
        self.skipped_ticks: int = 0

        # Rolling update rate tracking
        self._rate_calc_time: float = clock()
        self._update_count_last: int = store.update_count
        self._updates_per_sec: float = 0.0

    # ── One tick ─────────────────────────────────────────────────────

    def _levels(
        self, token_id: str, side: str, levels: Sequence[PriceLevel], now: float,
    ) -> tuple[LevelView, ...]:
        fills = depth_fills(levels, self.bar_width)
        return tuple(
            LevelView(
                price=level.price,
                size=level.size,
                fill=fill,
                flash=flash(self.detector, self.tracker, FlashKey(token_id, side, i), level.price, now),
            )
            for i, (level, fill) in enumerate(zip(levels, fills))
        )

    def _outcome_view(self, name: str, token_id: str, now: float) -> OutcomeView:
        book = self._store.get(token_id)
        if book is None:
            status = BookStatus.NO_BOOK if self._missing(token_id) else BookStatus.CONNECTING
            return OutcomeView(name=name, token_id=token_id, status=status)

        stats = book_stats(book)
        mid_flash = Direction.NONE
        if stats.mid is not None:
            mid_flash = flash(self.detector, self.tracker, FlashKey(token_id, "mid", "mid"), stats.mid, now)

        return OutcomeView(
            name=name,
            token_id=token_id,
            status=BookStatus.READY,
            best_bid=stats.best_bid,
            best_ask=stats.best_ask,
            mid=stats.mid,
            spread=stats.spread,
            mid_flash=mid_flash,
            bids=self._levels(token_id, "bid", book.bids[:self.depth], now),
            asks=self._levels(token_id, "ask", book.asks[:self.depth], now),
        )

    def _update_rate(self, now: float) -> float:
        elapsed = now - self._rate_calc_time
        if elapsed >= 1.0:
            count = self._store.update_count
            self._updates_per_sec = (count - self._update_count_last) / elapsed
            self._update_count_last = count
            self._rate_calc_time = now
        return self._updates_per_sec

    def compose(self, now: float) -> DashboardView:
        """Gather current state into an immutable view."""
        outcomes = tuple(self._outcome_view(name, token_id, now) for name, token_id in self.outcomes)

        stamps = [self._store.updated_at(token_id) for _, token_id in self.outcomes]
        stamps = [s for s in stamps if s is not None]
        age = now - max(stamps) if stamps else None

        return DashboardView(
            title=self.title,
            outcomes=outcomes,
            feed_state=self._feed_state(),
            age=age,
            clock=self._wall_clock(),
            depth=self.depth,
            bar_width=self.bar_width,
            updates_per_sec=self._update_rate(now),
        )

    def tick(self, now: float | None = None) -> Frame:
        """Gather, diff and emit one frame."""
        now = self._clock() if now is None else now
        self.tracker.expire(now)
        frame = self._render(self.compose(now))
        self._sink.write(frame, self.last_line_count)
        self.last_line_count = frame.line_count
        self.ticks += 1
        return frame

    # ── Loop ─────────────────────────────────────────────────────────

    async def run(self, stop: asyncio.Event) -> None:
        """
        Tick until ``stop`` is set.

        Exceptions from the sink or renderer are fatal and propagate.
        """
        next_at = self._clock()
        while not stop.is_set():
            now = self._clock()
            behind = now - next_at
            if behind >= self.interval:
                missed = int(behind // self.interval)
                self.skipped_ticks += missed
                next_at += missed * self.interval
                logger.debug("Render loop behind by %.0fms, skipped %d ticks", behind * 1000, missed)

            self.tick(now)

            next_at += self.interval
            delay = max(0.0, next_at - self._clock())
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        logger.info("Render loop stopped after %d ticks (%d skipped)", self.ticks, self.skipped_ticks)
