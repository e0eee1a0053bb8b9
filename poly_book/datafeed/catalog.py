"""
TTL-cached market catalog with fuzzy search.

The whole active catalog is held in one CacheEntry which is swapped out
wholesale on refresh, so a reader never sees a half-updated list. When a
refresh fails the stale entry keeps serving; only a failure with nothing
cached reaches the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from .payloads import parse_event_slug
from ..engine.search import SearchWeights, fuzzy_search
from ..errors import TransientFetchError, UnresolvableMarket
from ..types import CacheEntry, Market

logger = logging.getLogger(__name__)

FetchMarkets = Callable[[int], Awaitable[list[Market]]]
FetchEventMarket = Callable[[str], Awaitable["Market | None"]]


class MarketCatalog:
    """
    Searchable catalog of active markets.

    Usage:
        catalog = MarketCatalog(rest.fetch_markets, rest.fetch_event_market)
        top = await catalog.search("")
        hits = await catalog.search("fed rates")
    """

    def __init__(
        self,
        fetch_markets: FetchMarkets,
        fetch_event_market: FetchEventMarket | None = None,
        *,
        ttl: float = 60.0,
        page_size: int = 200,
        top_n: int = 50,
        limit: int = 30,
        weights: SearchWeights = SearchWeights(),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_markets = fetch_markets
        self._fetch_event_market = fetch_event_market
        self.ttl = ttl
        self.page_size = page_size
        self.top_n = top_n
        self.limit = limit
        self.weights = weights
        self._clock = clock
        self._entry: CacheEntry | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def _is_fresh(self, now: float) -> bool:
        return self._entry is not None and (now - self._entry.fetched_at) < self.ttl

    async def markets(self) -> tuple[Market, ...]:
        """Current catalog, refreshing first if absent or older than the TTL."""
        now = self._clock()
        if self._is_fresh(now):
            return self._entry.markets

        try:
            fetched = await self._fetch_markets(self.page_size)
        except TransientFetchError as e:
            if self._entry is None:
                raise
            age = now - self._entry.fetched_at
            logger.warning("Catalog refresh failed, serving %.0fs old entry: %s", age, e)
            return self._entry.markets

        usable = tuple(m for m in fetched if len(m.token_ids) >= 2)
        self._entry = CacheEntry(markets=usable, fetched_at=now)
        logger.debug("Catalog refreshed: %d markets", len(usable))
        return usable

    async def search(self, query: str = "") -> list[Market]:
        """
        Search the catalog.

        Empty query: top markets by 24h volume.
        Otherwise: fuzzy match on title and description, best first.
        """
        markets = await self.markets()
        if not query.strip():
            return sorted(markets, key=lambda m: m.volume_24h, reverse=True)[:self.top_n]
        return fuzzy_search(query, markets, self.weights, self.limit)

    def find(self, key: str) -> Market | None:
        """Look up a cached market by id, slug or exact title."""
        if self._entry is None or not key:
            return None
        for market in self._entry.markets:
            if key in (market.id, market.slug, market.title):
                return market
        return None

    async def resolve_url(self, text: str) -> Market:
        """Resolve a polymarket.com/event/<slug> URL to its most active market."""
        slug = parse_event_slug(text)
        if slug is None:
            raise UnresolvableMarket(f"not a Polymarket event URL: {text!r}")
        if self._fetch_event_market is None:
            raise UnresolvableMarket("URL lookup is not available")

        market = await self._fetch_event_market(slug)
        if market is None:
            raise UnresolvableMarket(f'could not fetch a market for slug "{slug}"')
        if len(market.token_ids) < 2:
            raise UnresolvableMarket(f"{market.title} does not have enough outcomes")
        logger.info("Resolved slug %s to market %s (%s)", slug, market.id, market.slug or "no slug")
        return market
