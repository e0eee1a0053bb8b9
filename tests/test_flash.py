"""Change detection and highlight windows."""

from decimal import Decimal

import pytest

from poly_book.engine.flash import ChangeDetector, FlashTracker, flash
from poly_book.types import Direction, FlashKey

D = Decimal


class TestChangeDetector:

    def test_first_observation_is_none(self):
        detector = ChangeDetector()

        assert detector.observe("k", D("0.45")) is Direction.NONE

    def test_repeat_is_none(self):
        detector = ChangeDetector()
        detector.observe("k", D("0.45"))

        assert detector.observe("k", D("0.45")) is Direction.NONE
        assert detector.observe("k", D("0.4500")) is Direction.NONE

    def test_up_and_down(self):
        detector = ChangeDetector()
        detector.observe("k", D("0.45"))

        assert detector.observe("k", D("0.46")) is Direction.UP
        assert detector.observe("k", D("0.44")) is Direction.DOWN

    @pytest.mark.parametrize("new, expected", [
        ("0.5001", Direction.UP),
        ("0.4999", Direction.DOWN),
        ("0.50009", Direction.NONE),
        ("0.49991", Direction.NONE),
    ])
    def test_epsilon_boundary(self, new, expected):
        detector = ChangeDetector()
        detector.observe("k", D("0.5"))

        assert detector.observe("k", D(new)) is expected

    def test_small_change_still_updates_stored_value(self):
        detector = ChangeDetector()
        detector.observe("k", D("0.5"))
        detector.observe("k", D("0.50006"))

        # 0.00004 from the stored value, not 0.0001 from the first value
        assert detector.observe("k", D("0.5001")) is Direction.NONE

    def test_keys_are_independent(self):
        detector = ChangeDetector()
        detector.observe(FlashKey("T1", "bid", 0), D("0.45"))

        assert detector.observe(FlashKey("T2", "bid", 0), D("0.55")) is Direction.NONE
        assert detector.observe(FlashKey("T1", "bid", 0), D("0.46")) is Direction.UP

    def test_forget_drops_only_named_tokens(self):
        detector = ChangeDetector()
        detector.observe(FlashKey("T1", "bid", 0), D("0.45"))
        detector.observe(FlashKey("T1", "mid", "mid"), D("0.5"))
        detector.observe(FlashKey("T2", "ask", 0), D("0.55"))

        detector.forget(["T1"])

        assert len(detector) == 1
        assert detector.observe(FlashKey("T1", "bid", 0), D("0.60")) is Direction.NONE


class TestFlashTracker:

    def test_window_lasts_duration(self):
        tracker = FlashTracker(duration=0.3)
        tracker.record("k", Direction.UP, now=10.0)

        assert tracker.lookup("k", 10.1) is Direction.UP
        assert tracker.lookup("k", 10.3) is Direction.NONE

    def test_none_does_not_open_window(self):
        tracker = FlashTracker()
        tracker.record("k", Direction.NONE, now=0.0)

        assert len(tracker) == 0

    def test_expire_removes_finished_windows(self):
        tracker = FlashTracker(duration=0.3)
        tracker.record("old", Direction.DOWN, now=0.0)
        tracker.record("new", Direction.UP, now=0.2)

        assert tracker.expire(0.3) == 1
        assert tracker.lookup("new", 0.3) is Direction.UP
        assert len(tracker) == 1

    def test_new_change_restarts_window(self):
        tracker = FlashTracker(duration=0.3)
        tracker.record("k", Direction.UP, now=0.0)
        tracker.record("k", Direction.DOWN, now=0.2)

        assert tracker.lookup("k", 0.4) is Direction.DOWN


class TestFlash:

    def test_highlight_persists_across_unchanged_ticks(self):
        detector, tracker = ChangeDetector(), FlashTracker(duration=0.3)
        key = FlashKey("T1", "bid", 0)

        assert flash(detector, tracker, key, D("0.50"), 0.0) is Direction.NONE
        assert flash(detector, tracker, key, D("0.60"), 0.1) is Direction.UP
        assert flash(detector, tracker, key, D("0.60"), 0.2) is Direction.UP
        assert flash(detector, tracker, key, D("0.60"), 0.45) is Direction.NONE
