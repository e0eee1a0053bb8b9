"""
Data types for poly_book.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Prices and sizes are Decimal, parsed once at the ingestion boundary
- Books are replaced wholesale, so readers can never see a half-written one
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Union


class Direction(str, Enum):
    """Change classification between two consecutive observations."""
    UP = "up"
    DOWN = "down"
    NONE = "none"


class FeedState(str, Enum):
    """Streaming feed connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


class BookStatus(str, Enum):
    """What the dashboard knows about one outcome's book."""
    READY = "ready"
    CONNECTING = "connecting"  # Nothing received yet
    NO_BOOK = "no_book"        # Bootstrap said the book does not exist


class Market(NamedTuple):
    """One active market from the catalog."""
    id: str
    title: str
    description: str
    outcomes: tuple[str, ...]   # Ordered outcome names
    token_ids: tuple[str, ...]  # One CLOB token per outcome, same order
    volume_24h: float
    liquidity: float
    slug: str = ""


class PriceLevel(NamedTuple):
    """Single resting-order aggregate at one price."""
    price: Decimal  # In [0, 1]
    size: Decimal


class OrderBook(NamedTuple):
    """
    Full two-sided book for one token.

    bids: descending by price (best bid first)
    asks: ascending by price (best ask first)
    """
    bids: tuple[PriceLevel, ...]
    asks: tuple[PriceLevel, ...]
    hash: str | None = None

    @property
    def best_bid(self) -> Decimal | None:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Decimal | None:
        return self.asks[0].price if self.asks else None


class CacheEntry(NamedTuple):
    """Catalog snapshot. Replaced wholesale on refresh."""
    markets: tuple[Market, ...]
    fetched_at: float  # Monotonic seconds


# Level index, or "mid" for the outcome's mid price
FlashLevel = Union[int, str]


class FlashKey(NamedTuple):
    """Identity of one observed scalar on the dashboard."""
    token_id: str
    side: str          # "bid", "ask" or "mid"
    level: FlashLevel  # Depth index, or "mid"


class FlashState(NamedTuple):
    """Open highlight window for one key."""
    direction: Direction
    expires_at: float  # Monotonic seconds


# ── View model (built once per render tick) ─────────────────────────


class LevelView(NamedTuple):
    """One rendered ladder row."""
    price: Decimal
    size: Decimal
    fill: int            # Depth bar cells filled
    flash: Direction


class OutcomeView(NamedTuple):
    """Everything needed to render one outcome's book."""
    name: str
    token_id: str
    status: BookStatus
    best_bid: Decimal | None = None
    best_ask: Decimal | None = None
    mid: Decimal | None = None
    spread: Decimal | None = None
    mid_flash: Direction = Direction.NONE
    bids: tuple[LevelView, ...] = ()
    asks: tuple[LevelView, ...] = ()


class DashboardView(NamedTuple):
    """
    Complete dashboard state for one render tick.

    Immutable; handed to the pure frame renderer.
    """
    title: str
    outcomes: tuple[OutcomeView, ...]
    feed_state: FeedState
    age: float | None  # Seconds since the newest book write, None if nothing yet
    clock: str         # Wall-clock time for the header
    depth: int         # Rows per side
    bar_width: int
    updates_per_sec: float = 0.0  # Book writes per second (feed health)


# ── Frames (what the terminal sink receives) ────────────────────────


class Segment(NamedTuple):
    """Run of text sharing one style and highlight annotation."""
    text: str
    style: str = ""
    flash: Direction = Direction.NONE


class FrameLine(NamedTuple):
    segments: tuple[Segment, ...] = ()

    @property
    def plain(self) -> str:
        return "".join(s.text for s in self.segments)


class Frame(NamedTuple):
    """Ordered lines for one tick."""
    lines: tuple[FrameLine, ...]

    @property
    def line_count(self) -> int:
        return len(self.lines)
