"""Tests for the current/previous window blend."""

from __future__ import annotations

from datetime import datetime, timedelta

from quotagate.limiter.merger import blend_fraction, merge_windows
from quotagate.models import RateLimitCounter


def _counter(timestamp: datetime, count: float) -> RateLimitCounter:
    return RateLimitCounter(timestamp=timestamp, count=count)


class TestMergeWindows:
    def test_no_previous_uses_current_count(self, base_time: datetime) -> None:
        current = _counter(base_time, 4)
        assert merge_windows(current, None, base_time + timedelta(seconds=30), 60) == 4

    def test_start_of_window_counts_previous_fully(self, base_time: datetime) -> None:
        current = _counter(base_time, 1)
        previous = _counter(base_time - timedelta(seconds=60), 5)
        assert merge_windows(current, previous, base_time, 60) == 5

    def test_half_window_blends_evenly(self, base_time: datetime) -> None:
        current = _counter(base_time, 1)
        previous = _counter(base_time - timedelta(seconds=60), 5)
        now = base_time + timedelta(seconds=30)
        # ceil(1 * 0.5 + 5 * 0.5) == 3
        assert merge_windows(current, previous, now, 60) == 3

    def test_result_rounds_up(self, base_time: datetime) -> None:
        current = _counter(base_time, 2)
        previous = _counter(base_time - timedelta(seconds=10), 1)
        now = base_time + timedelta(seconds=5)
        # 2 * 0.5 + 1 * 0.5 == 1.5
        assert merge_windows(current, previous, now, 10) == 2

    def test_future_timestamp_is_clamped(self, base_time: datetime) -> None:
        current = _counter(base_time + timedelta(seconds=30), 1)
        previous = _counter(base_time - timedelta(seconds=60), 5)
        assert merge_windows(current, previous, base_time, 60) == 5

    def test_stale_current_is_clamped(self, base_time: datetime) -> None:
        current = _counter(base_time, 2)
        previous = _counter(base_time - timedelta(seconds=60), 5)
        now = base_time + timedelta(seconds=600)
        assert merge_windows(current, previous, now, 60) == 2


class TestBlendFraction:
    def test_fraction_of_elapsed_window(self, base_time: datetime) -> None:
        current = _counter(base_time, 1)
        assert blend_fraction(current, base_time + timedelta(seconds=15), 60) == 0.25

    def test_fraction_bounds(self, base_time: datetime) -> None:
        current = _counter(base_time, 1)
        assert blend_fraction(current, base_time - timedelta(seconds=5), 60) == 0.0
        assert blend_fraction(current, base_time + timedelta(seconds=120), 60) == 1.0
