"""
Frame renderer.

Pure function from a DashboardView to a Frame (styled text lines). No I/O
and no state: the same view always renders the same frame, which keeps the
render loop testable without a terminal.

Layout (two outcomes side by side, one outcome uses the same columns):

     <market title>
     Time: 12:00:01 | ● LIVE | 14 upd/s | Ctrl+C to go back

     YES:  45.5%        NO:  54.5%

     Yes Book Bid:45.0% Ask:46.0% Spread: 1.00%
     ─────────────────────────────────────────
     BIDS                      ASKS ...
     45.0%     1200 ████░░░░   46.0%   300 █░░░░░░░
     ...
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from ..types import (
    BookStatus, DashboardView, Direction, FeedState, Frame, FrameLine,
    LevelView, OutcomeView, Segment,
)

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
HEADER_COLOR = "#94a3b8"
TITLE_STYLE = "bold white"
SPREAD_STYLE = "yellow"
LIVE_STYLE = "bold #22c55e"
STALE_STYLE = "bold yellow"
DIM = "dim"
FLASH_STYLES = {
    Direction.UP: "bold black on #22c55e",
    Direction.DOWN: "bold white on #ef4444",
}

PRICE_W = 8
SIZE_W = 6
CELL_GAP = 2       # Between bid and ask columns
OUTCOME_GAP = 4    # Between outcomes
MARGIN = " "

_HUNDRED = Decimal(100)


def format_pct(price: Decimal | None, places: int = 1) -> str:
    """Price in [0, 1] as a percentage."""
    if price is None:
        return "--"
    return f"{price * _HUNDRED:.{places}f}%"


def format_size(size: Decimal) -> str:
    """Format size for display."""
    if size >= 1_000_000:
        return f"{size / 1_000_000:.1f}M"
    elif size >= 10_000:
        return f"{size / 1000:.1f}K"
    return f"{size:.0f}"


def make_bar(fill: int, width: int) -> str:
    """Horizontal depth bar using block characters."""
    fill = max(0, min(fill, width))
    return "█" * fill + "░" * (width - fill)


def _width(segments: Iterable[Segment]) -> int:
    return sum(len(s.text) for s in segments)


def _pad(segments: list[Segment], width: int) -> list[Segment]:
    missing = width - _width(segments)
    if missing > 0:
        segments.append(Segment(" " * missing))
    return segments


def _line(*segments: Segment) -> FrameLine:
    return FrameLine(tuple(s for s in segments if s.text))


def cell_width(bar_width: int) -> int:
    return PRICE_W + 1 + SIZE_W + 1 + bar_width


# ── Pieces ───────────────────────────────────────────────────────────


def _price_segment(text: str, color: str, direction: Direction, width: int) -> Segment:
    if direction is Direction.NONE:
        return Segment(text.ljust(width), color)
    arrow = "▲" if direction is Direction.UP else "▼"
    return Segment(f"{arrow}{text}".ljust(width), FLASH_STYLES[direction], direction)


def _level_cell(level: LevelView | None, color: str, bar_width: int) -> list[Segment]:
    if level is None:
        return [Segment(" " * cell_width(bar_width))]
    return [
        _price_segment(format_pct(level.price), color, level.flash, PRICE_W),
        Segment(" "),
        Segment(format_size(level.size).rjust(SIZE_W), HEADER_COLOR),
        Segment(" "),
        Segment(make_bar(level.fill, bar_width), DIM),
    ]


def _status_line(view: DashboardView) -> FrameLine:
    if view.feed_state is FeedState.SUBSCRIBED:
        feed = Segment("● LIVE", LIVE_STYLE)
    else:
        # Nothing received yet means this is the first connect, not a reconnect
        first = view.feed_state is FeedState.CONNECTING or view.age is None
        label = "CONNECTING" if first else "RECONNECTING"
        age = f" (stale {view.age:.0f}s)" if view.age is not None else ""
        feed = Segment(f"◌ {label}{age}", STALE_STYLE)

    return _line(
        Segment(MARGIN),
        Segment("Time: ", HEADER_COLOR),
        Segment(view.clock, "yellow"),
        Segment(" | ", HEADER_COLOR),
        feed,
        Segment(" | ", HEADER_COLOR),
        Segment(f"{view.updates_per_sec:.0f} upd/s", "cyan"),
        Segment(" | Ctrl+C to go back", HEADER_COLOR),
    )


def _mid_segments(outcome: OutcomeView) -> list[Segment]:
    label = Segment(f"{outcome.name.upper()}: ", "bold")
    if outcome.status is not BookStatus.READY:
        return [label, Segment("--", DIM)]
    text = format_pct(outcome.mid)
    if outcome.mid_flash is Direction.NONE:
        return [label, Segment(f" {text} ")]
    arrow = "▲" if outcome.mid_flash is Direction.UP else "▼"
    return [label, Segment(f"{arrow}{text} ", FLASH_STYLES[outcome.mid_flash], outcome.mid_flash)]


def _book_header(outcome: OutcomeView, color: str) -> FrameLine:
    segments = [Segment(MARGIN), Segment(f"{outcome.name} Book", f"bold {color}")]
    if outcome.status is BookStatus.READY:
        spread = format_pct(outcome.spread, places=2)
        segments += [
            Segment(f" Bid:{format_pct(outcome.best_bid)} Ask:{format_pct(outcome.best_ask)}", HEADER_COLOR),
            Segment(f" Spread: {spread}", SPREAD_STYLE),
        ]
    elif outcome.status is BookStatus.NO_BOOK:
        segments.append(Segment(" no order book for this outcome", DIM))
    else:
        segments.append(Segment(" connecting to live feed...", "yellow"))
    return _line(*segments)


def _placeholder(outcome: OutcomeView, width: int) -> list[Segment]:
    if outcome.status is BookStatus.NO_BOOK:
        return _pad([Segment("No resting orders", DIM)], width)
    return _pad([Segment("Connecting to live feed...", "yellow")], width)


# ── Frame ────────────────────────────────────────────────────────────


def render_frame(view: DashboardView) -> Frame:
    """Render one dashboard tick."""
    cell_w = cell_width(view.bar_width)
    outcome_w = cell_w * 2 + CELL_GAP
    total_w = outcome_w * len(view.outcomes) + OUTCOME_GAP * max(0, len(view.outcomes) - 1)
    colors = [BID_COLOR if i % 2 == 0 else ASK_COLOR for i in range(len(view.outcomes))]

    lines: list[FrameLine] = [
        _line(Segment(MARGIN), Segment(view.title, TITLE_STYLE)),
        _status_line(view),
        FrameLine(),
    ]

    # Mid prices
    mids: list[Segment] = [Segment(MARGIN)]
    for i, outcome in enumerate(view.outcomes):
        if i:
            mids.append(Segment(" " * 8))
        mids += _mid_segments(outcome)
    lines += [_line(*mids), FrameLine()]

    # Per-outcome summaries
    for outcome, color in zip(view.outcomes, colors):
        lines.append(_book_header(outcome, color))
    rule = _line(Segment(MARGIN), Segment("─" * total_w, HEADER_COLOR))
    lines.append(rule)

    # Column headers
    headers: list[Segment] = [Segment(MARGIN)]
    for i, _ in enumerate(view.outcomes):
        if i:
            headers.append(Segment(" " * OUTCOME_GAP))
        headers += [
            Segment("BIDS".ljust(cell_w), f"bold {BID_COLOR}"),
            Segment(" " * CELL_GAP),
            Segment("ASKS".ljust(cell_w), f"bold {ASK_COLOR}"),
        ]
    lines.append(_line(*headers))

    # Ladder rows
    for row in range(view.depth):
        segments: list[Segment] = [Segment(MARGIN)]
        for i, outcome in enumerate(view.outcomes):
            if i:
                segments.append(Segment(" " * OUTCOME_GAP))
            if outcome.status is not BookStatus.READY:
                if row == 0:
                    segments += _placeholder(outcome, outcome_w)
                else:
                    segments.append(Segment(" " * outcome_w))
                continue
            bid = outcome.bids[row] if row < len(outcome.bids) else None
            ask = outcome.asks[row] if row < len(outcome.asks) else None
            segments += _level_cell(bid, BID_COLOR, view.bar_width)
            segments.append(Segment(" " * CELL_GAP))
            segments += _level_cell(ask, ASK_COLOR, view.bar_width)
        lines.append(_trim(segments))

    lines.append(rule)
    lines.append(_line(
        Segment(MARGIN),
        Segment("Legend: ", DIM),
        Segment(" ▲ ", FLASH_STYLES[Direction.UP]),
        Segment(" Price up  ", DIM),
        Segment(" ▼ ", FLASH_STYLES[Direction.DOWN]),
        Segment(" Price down  ", DIM),
        Segment("█░ Depth bar", DIM),
    ))
    return Frame(tuple(lines))


def _trim(segments: list[Segment]) -> FrameLine:
    """Drop trailing blank padding; the sink clears to end of line anyway."""
    while segments and not segments[-1].text.strip() and segments[-1].flash is Direction.NONE:
        segments.pop()
    return FrameLine(tuple(segments))
