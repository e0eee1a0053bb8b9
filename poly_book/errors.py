"""
Error taxonomy.

Only a catalog fetch failure with no cached catalog escapes to the caller.
Everything else is absorbed where it happens and shows up as state
(stale, absent, reconnecting) on the dashboard.

A missing book is not an error: fetches return None for it.
"""


class PolyBookError(Exception):
    """Base class for all poly_book errors."""


class TransientFetchError(PolyBookError):
    """HTTP or transport failure on a REST call. Retry, or fall back to cache."""


class MalformedMessage(PolyBookError):
    """Payload missing required fields or carrying unparseable values."""


class ConnectionLost(PolyBookError):
    """Streaming connection dropped. Handled by the feed's reconnect loop."""


class UnresolvableMarket(PolyBookError):
    """Market cannot back a dashboard (unknown slug, too few outcome tokens)."""
