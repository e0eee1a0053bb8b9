"""
Ladder statistics and depth bars.

Depth bars are scaled per side against the largest size among the levels
actually shown, so the biggest visible level always fills the bar.
"""

from __future__ import annotations

from decimal import Decimal
from typing import NamedTuple, Sequence

import numpy as np

from ..types import OrderBook, PriceLevel

_TWO = Decimal(2)


class BookStats(NamedTuple):
    best_bid: Decimal | None
    best_ask: Decimal | None
    mid: Decimal | None
    spread: Decimal | None


def book_stats(book: OrderBook) -> BookStats:
    """
    Best bid/ask, mid and spread.

    With one side empty the mid falls back to the other side's best price
    and the spread is undefined.
    """
    bb, ba = book.best_bid, book.best_ask
    if bb is not None and ba is not None:
        return BookStats(bb, ba, (bb + ba) / _TWO, ba - bb)
    return BookStats(bb, ba, bb if bb is not None else ba, None)


def depth_fills(levels: Sequence[PriceLevel], width: int) -> list[int]:
    """
    Bar cells filled per level, proportional to size.

    The scale floor of 1 keeps dust-sized books from drawing full bars.
    """
    if not levels:
        return []
    sizes = np.fromiter((float(level.size) for level in levels), dtype=np.float64, count=len(levels))
    max_size = max(float(sizes.max()), 1.0)
    ratios = np.minimum(sizes / max_size, 1.0)
    return np.rint(ratios * width).astype(np.int64).tolist()
