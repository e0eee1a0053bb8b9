"""
Change detection and flash highlighting.

HOT PATH: observe() runs for every visible price on every render tick
(2 outcomes x 2 sides x 12 levels + 2 mids = 50 calls per 100ms).

The detector only classifies; the tracker only remembers open highlight
windows. Expiring windows is the render loop's job.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Hashable, Iterable

from ..types import Direction, FlashKey, FlashState

DEFAULT_EPSILON = Decimal("0.0001")


class ChangeDetector:
    """
    Classifies each new value of a key against the previous one.

    The first observation of a key has nothing to compare with and yields
    NONE. Every observation overwrites the stored value, including ones
    whose change was too small to report.
    """

    __slots__ = ('epsilon', '_previous')

    def __init__(self, epsilon: Decimal = DEFAULT_EPSILON) -> None:
        self.epsilon = epsilon
        self._previous: dict[Hashable, Decimal] = {}

    def observe(self, key: Hashable, value: Decimal) -> Direction:
        prev = self._previous.get(key)
        self._previous[key] = value

        if prev is None:
            return Direction.NONE
        delta = value - prev
        if abs(delta) < self.epsilon:
            return Direction.NONE
        return Direction.UP if delta > 0 else Direction.DOWN

    def forget(self, token_ids: Iterable[str]) -> None:
        """Drop history for tokens leaving the screen."""
        tokens = set(token_ids)
        for key in [k for k in self._previous if isinstance(k, FlashKey) and k.token_id in tokens]:
            del self._previous[key]

    def __len__(self) -> int:
        return len(self._previous)


class FlashTracker:
    """Open highlight windows, keyed like the detector."""

    __slots__ = ('duration', '_states')

    def __init__(self, duration: float = 0.3) -> None:
        self.duration = duration
        self._states: dict[Hashable, FlashState] = {}

    def record(self, key: Hashable, direction: Direction, now: float) -> None:
        """Open (or restart) the window for ``key``. NONE is ignored."""
        if direction is Direction.NONE:
            return
        self._states[key] = FlashState(direction, now + self.duration)

    def lookup(self, key: Hashable, now: float) -> Direction:
        state = self._states.get(key)
        if state is None or state.expires_at <= now:
            return Direction.NONE
        return state.direction

    def expire(self, now: float) -> int:
        """Remove windows that have run out. Returns how many were removed."""
        expired = [k for k, s in self._states.items() if s.expires_at <= now]
        for key in expired:
            del self._states[key]
        return len(expired)

    def clear(self) -> None:
        self._states.clear()

    def __len__(self) -> int:
        return len(self._states)


def flash(
    detector: ChangeDetector,
    tracker: FlashTracker,
    key: Hashable,
    value: Decimal,
    now: float,
) -> Direction:
    """Observe ``value`` and return the highlight currently in effect for ``key``."""
    tracker.record(key, detector.observe(key, value), now)
    return tracker.lookup(key, now)
