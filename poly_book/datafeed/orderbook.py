"""
Per-token order book store.

The feed delivers full snapshots, not diffs, so there is no merge logic:
every write replaces the token's book with a freshly sorted immutable
OrderBook in a single assignment. A reader therefore sees either the old
book or the new one, never bids from one snapshot with asks from another.

Thread-safety: NOT thread-safe. Designed for single-threaded async use.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Iterable

from ..types import OrderBook

logger = logging.getLogger(__name__)

FetchBook = Callable[[str], Awaitable["OrderBook | None"]]


def sort_book(book: OrderBook) -> OrderBook:
    """Bids descending, asks ascending. Source ordering is never trusted."""
    return OrderBook(
        bids=tuple(sorted(book.bids, key=lambda level: level.price, reverse=True)),
        asks=tuple(sorted(book.asks, key=lambda level: level.price)),
        hash=book.hash,
    )


class OrderBookStore:
    """
    Latest book per token, from a REST bootstrap plus streaming snapshots.

    The feed client and ``bootstrap`` are the only writers.
    """

    __slots__ = ('_fetch_book', '_clock', '_books', '_updated_at', '_writes', 'update_count')

    def __init__(self, fetch_book: FetchBook, clock: Callable[[], float] = time.monotonic) -> None:
        self._fetch_book = fetch_book
        self._clock = clock

        self._books: dict[str, OrderBook] = {}
        self._updated_at: dict[str, float] = {}
        # Per-token write counter, used to spot snapshots landing mid-bootstrap
        self._writes: dict[str, int] = {}
        self.update_count: int = 0

    def _write(self, token_id: str, book: OrderBook) -> OrderBook:
        book = sort_book(book)
        self._books[token_id] = book
        self._updated_at[token_id] = self._clock()
        self._writes[token_id] = self._writes.get(token_id, 0) + 1
        self.update_count += 1
        return book

    async def bootstrap(self, token_id: str) -> OrderBook | None:
        """
        Fetch the current book over REST and store it.

        Returns None when the token has no book. Transport failures raise
        TransientFetchError and leave the store untouched.
        """
        writes_before = self._writes.get(token_id, 0)
        book = await self._fetch_book(token_id)

        if self._writes.get(token_id, 0) != writes_before:
            # A streaming snapshot arrived while we waited; it is newer
            logger.debug("Bootstrap for %s superseded by feed snapshot", token_id)
            return self._books.get(token_id)

        if book is None:
            logger.info("No order book for token %s", token_id)
            return None
        return self._write(token_id, book)

    def apply_snapshot(self, token_id: str, book: OrderBook) -> None:
        """Replace the token's whole book."""
        self._write(token_id, book)

    def get(self, token_id: str) -> OrderBook | None:
        """Most recent book, or None if nothing has arrived yet."""
        return self._books.get(token_id)

    def updated_at(self, token_id: str) -> float | None:
        """Monotonic time of the last write for ``token_id``."""
        return self._updated_at.get(token_id)

    def discard(self, token_ids: Iterable[str]) -> None:
        """Forget books for tokens no longer on screen."""
        for token_id in token_ids:
            self._books.pop(token_id, None)
            self._updated_at.pop(token_id, None)
