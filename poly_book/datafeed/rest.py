"""
Polymarket REST client (Gamma catalog + CLOB books).

Endpoints used (all public, no auth):
  GET {gamma}/markets?active=true&closed=false&order=volume24hr&...   -- catalog
  GET {gamma}/events?slug=X                                           -- event by URL slug
  GET {clob}/book?token_id=X                                          -- full book for a token

Transport failures surface as TransientFetchError. A 404 on /book is not
a failure: the token simply has no book, and None is returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from .payloads import json_loads, parse_book, parse_market
from ..errors import MalformedMessage, TransientFetchError
from ..types import Market, OrderBook

logger = logging.getLogger(__name__)


class PolymarketRest:
    """
    Thin async wrapper over the public REST endpoints.

    The aiohttp session is owned by the caller (one per process).
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        gamma_base: str,
        clob_base: str,
        timeout: float = 10.0,
    ) -> None:
        self.session = session
        self.gamma_base = gamma_base.rstrip("/")
        self.clob_base = clob_base.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _get(self, url: str, params: dict[str, Any], allow_404: bool = False) -> Any:
        """Issue a GET and return parsed JSON, or None on an allowed 404."""
        logger.debug("GET %s params=%s", url, params)
        try:
            async with self.session.get(url, params=params, timeout=self.timeout) as resp:
                if allow_404 and resp.status == 404:
                    return None
                resp.raise_for_status()
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientFetchError(f"GET {url} failed: {e!r}") from e

        try:
            return json_loads(data)
        except MalformedMessage as e:
            raise TransientFetchError(f"GET {url} returned an unreadable body") from e

    # ── Catalog ──────────────────────────────────────────────────────

    async def fetch_markets(self, limit: int = 200) -> list[Market]:
        """Active markets, most 24h volume first. Unusable entries are skipped."""
        payload = await self._get(f"{self.gamma_base}/markets", params={
            "active": "true",
            "closed": "false",
            "order": "volume24hr",
            "ascending": "false",
            "limit": limit,
        })
        if not isinstance(payload, list):
            raise TransientFetchError("catalog response is not an array")

        markets = []
        for raw in payload:
            market = parse_market(raw)
            if market is not None:
                markets.append(market)
        logger.info("Fetched %d markets (%d usable)", len(payload), len(markets))
        return markets

    async def fetch_event_market(self, slug: str) -> Market | None:
        """
        Resolve an event slug to its most active market.

        Events nest several markets; the one with the highest 24h volume
        among those that can back a dashboard wins.
        """
        payload = await self._get(f"{self.gamma_base}/events", params={"slug": slug, "limit": 1})
        events = payload if isinstance(payload, list) else [payload] if payload else []
        if not events or not isinstance(events[0], dict):
            return None

        event = events[0]
        candidates = [parse_market(m, event=event) for m in event.get("markets") or []]
        candidates = [m for m in candidates if m is not None]
        if not candidates:
            return None
        return max(candidates, key=lambda m: m.volume_24h)

    # ── Books ────────────────────────────────────────────────────────

    async def fetch_book(self, token_id: str) -> OrderBook | None:
        """Current book for a token, or None when no book exists."""
        payload = await self._get(
            f"{self.clob_base}/book", params={"token_id": token_id}, allow_404=True,
        )
        if payload is None:
            return None
        try:
            return parse_book(payload)
        except MalformedMessage as e:
            raise TransientFetchError(f"book for {token_id} did not parse: {e}") from e
