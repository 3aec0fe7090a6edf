"""
Unit tests for BeatTracker.
Run with:  pytest tests/test_beat_tracker.py
"""

from __future__ import annotations

import pytest

from pcg_monitor.beat_tracker import BeatTracker


def _feed(tracker: BeatTracker, timestamps, start_ordinal: int = 1) -> None:
    """Feed *timestamps* as odd ordinals (one per cardiac cycle)."""
    for i, ts in enumerate(timestamps):
        tracker.on_peak_event(start_ordinal + 2 * i, ts)


class TestBeatTracker:

    def test_no_estimate_initially(self):
        bt = BeatTracker()
        assert bt.bpm is None
        assert bt.average_interval_ms is None

    def test_bpm_formula(self):
        bt = BeatTracker()
        _feed(bt, [1000, 1600, 2200])
        assert bt.bpm == 100
        assert bt.average_interval_ms == pytest.approx(600.0)

    def test_single_interval_is_enough(self):
        bt = BeatTracker()
        _feed(bt, [0, 750])
        assert bt.bpm == 80

    def test_single_timestamp_gives_no_estimate(self):
        bt = BeatTracker()
        assert bt.on_peak_event(1, 1000) is False
        assert bt.bpm is None

    def test_even_ordinals_ignored(self):
        bt = BeatTracker()
        bt.on_peak_event(1, 1000)
        assert bt.on_peak_event(2, 1100) is False
        bt.on_peak_event(3, 1600)
        bt.on_peak_event(4, 1700)
        assert bt.timestamps == (1000, 1600)
        assert bt.bpm == 100

    def test_mean_over_uneven_intervals(self):
        bt = BeatTracker()
        _feed(bt, [0, 500, 1500])      # intervals 500 and 1000 → mean 750
        assert bt.bpm == 80

    def test_rounds_half_up(self):
        bt = BeatTracker()
        _feed(bt, [0, 960])            # 60000 / 960 = 62.5
        assert bt.bpm == 63

    def test_window_is_bounded_fifo(self):
        bt = BeatTracker(window=10)
        _feed(bt, [i * 1000 for i in range(15)])
        assert len(bt.timestamps) == 10
        assert bt.timestamps[0] == 5000
        assert bt.timestamps[-1] == 14000
        assert bt.bpm == 60

    def test_old_intervals_age_out(self):
        bt = BeatTracker(window=3)
        _feed(bt, [0, 2000, 4000])     # 30 BPM
        assert bt.bpm == 30
        _feed(bt, [4500, 5000], start_ordinal=7)
        # window is now 4000, 4500, 5000
        assert bt.bpm == 120


class TestStickyEstimate:

    def test_degenerate_interval_keeps_previous(self):
        bt = BeatTracker()
        assert bt.on_peak_event(1, 1000) is False
        assert bt.on_peak_event(3, 1000) is False
        assert bt.bpm is None
        # the zero interval still counts in the mean: (0 + 600) / 2 = 300 ms
        assert bt.on_peak_event(5, 1600) is True
        assert bt.bpm == 200

    def test_degenerate_after_estimate_is_sticky(self):
        bt = BeatTracker(window=2)
        _feed(bt, [1000, 1600])
        assert bt.bpm == 100
        bt.on_peak_event(5, 1600)      # window (1600, 1600)
        assert bt.bpm == 100

    def test_reset_returns_to_no_estimate(self):
        bt = BeatTracker()
        _feed(bt, [1000, 1600])
        bt.reset()
        assert bt.bpm is None
        assert bt.timestamps == ()
        bt.on_peak_event(1, 5000)
        assert bt.bpm is None

    def test_window_too_small_rejected(self):
        with pytest.raises(ValueError):
            BeatTracker(window=1)
