"""
Wire payload parsing.

This is the ingestion boundary: every price and size is turned into a
Decimal here exactly once. Anything that does not parse becomes a
MalformedMessage; callers decide whether that is fatal (it never is for
the streaming feed).

Expected book format (REST and WebSocket alike):
    {asset_id?, bids: [{price, size}, ...], asks: [{price, size}, ...], hash?}
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator

import orjson

from ..errors import MalformedMessage
from ..types import Market, OrderBook, PriceLevel

_ZERO = Decimal(0)
_ONE = Decimal(1)

# https://polymarket.com/event/<slug>[/<market>][?tid=...]
_EVENT_URL_RE = re.compile(r"polymarket\.com/event/([^?/#\s]+)")

# Used when the catalog omits outcome names
_DEFAULT_OUTCOMES = ("Yes", "No")


def json_loads(data: bytes | str) -> Any:
    """Decode JSON, mapping decode failures to MalformedMessage."""
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode()


def json_list(val: Any) -> list:
    """Parse a JSON-encoded array string, or return a native list as-is."""
    if isinstance(val, (list, tuple)):
        return list(val)
    if isinstance(val, str) and val:
        try:
            parsed = orjson.loads(val)
        except orjson.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _to_float(val: Any) -> float:
    try:
        number = float(val)
    except (TypeError, ValueError):
        return 0.0
    # NaN fails the comparison
    return number if number >= 0.0 else 0.0


def _to_decimal(val: Any, field: str) -> Decimal:
    if isinstance(val, float):
        val = repr(val)
    try:
        number = Decimal(val)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise MalformedMessage(f"bad {field}: {val!r}") from e
    if not number.is_finite():
        raise MalformedMessage(f"bad {field}: {val!r}")
    return number


# ── Books ────────────────────────────────────────────────────────────


def parse_levels(raw: Any) -> tuple[PriceLevel, ...]:
    """
    Parse one side of a book.

    Accepts [{price, size}, ...] or [[price, size], ...].
    Order is preserved; sorting belongs to the store.
    """
    if not isinstance(raw, (list, tuple)):
        raise MalformedMessage(f"levels must be an array, got {type(raw).__name__}")

    levels = []
    for entry in raw:
        if isinstance(entry, dict):
            if "price" not in entry or "size" not in entry:
                raise MalformedMessage(f"level missing price/size: {entry!r}")
            price_raw, size_raw = entry["price"], entry["size"]
        elif isinstance(entry, (list, tuple)) and len(entry) >= 2:
            price_raw, size_raw = entry[0], entry[1]
        else:
            raise MalformedMessage(f"bad level: {entry!r}")

        price = _to_decimal(price_raw, "price")
        size = _to_decimal(size_raw, "size")
        if not _ZERO <= price <= _ONE:
            raise MalformedMessage(f"price out of range: {price}")
        if size < _ZERO:
            raise MalformedMessage(f"negative size: {size}")
        levels.append(PriceLevel(price, size))
    return tuple(levels)


def parse_book(payload: Any) -> OrderBook:
    """Parse a REST /book response. Missing sides mean no resting orders."""
    if not isinstance(payload, dict):
        raise MalformedMessage("book payload must be an object")
    return OrderBook(
        bids=parse_levels(payload.get("bids") or []),
        asks=parse_levels(payload.get("asks") or []),
        hash=payload.get("hash"),
    )


def parse_book_message(item: Any) -> tuple[str, OrderBook]:
    """
    Parse one streaming book snapshot.

    Unlike the REST body, both sides and the asset id are mandatory.
    """
    if not isinstance(item, dict):
        raise MalformedMessage("update must be an object")
    asset_id = item.get("asset_id")
    if not asset_id or not isinstance(asset_id, str):
        raise MalformedMessage("update missing asset_id")
    if "bids" not in item or "asks" not in item:
        raise MalformedMessage(f"update for {asset_id} missing bids/asks")
    book = OrderBook(
        bids=parse_levels(item["bids"]),
        asks=parse_levels(item["asks"]),
        hash=item.get("hash"),
    )
    return asset_id, book


def iter_message_items(payload: Any) -> Iterator[Any]:
    """Server frames are a single object or an array of objects."""
    if isinstance(payload, list):
        yield from payload
    else:
        yield payload


# ── Markets ──────────────────────────────────────────────────────────


def parse_market(raw: Any, event: dict | None = None) -> Market | None:
    """
    Build a Market from a Gamma market object.

    ``event`` supplies title/description fallbacks for markets nested in an
    event. Returns None when the entry cannot back a dashboard (fewer than
    two valid outcome tokens).
    """
    if not isinstance(raw, dict):
        return None
    event = event or {}

    token_ids = tuple(
        str(t) for t in json_list(raw.get("clobTokenIds"))
        if isinstance(t, (str, int)) and str(t).strip()
    )
    if len(token_ids) < 2:
        return None

    names = [str(o) for o in json_list(raw.get("outcomes"))]
    outcomes = []
    for i in range(len(token_ids)):
        if i < len(names) and names[i]:
            outcomes.append(names[i])
        elif i < len(_DEFAULT_OUTCOMES):
            outcomes.append(_DEFAULT_OUTCOMES[i])
        else:
            outcomes.append(f"Outcome {i + 1}")

    market_id = raw.get("id")
    if market_id is None:
        return None

    return Market(
        id=str(market_id),
        title=raw.get("question") or raw.get("title") or event.get("title") or "Unknown Market",
        description=raw.get("description") or event.get("description") or "",
        outcomes=tuple(outcomes),
        token_ids=token_ids,
        volume_24h=_to_float(raw.get("volume24hr")),
        liquidity=_to_float(raw.get("liquidity")),
        slug=raw.get("slug") or "",
    )


def parse_event_slug(text: str) -> str | None:
    """Extract the event slug from a polymarket.com/event/<slug> URL."""
    match = _EVENT_URL_RE.search(text or "")
    return match.group(1) if match else None
