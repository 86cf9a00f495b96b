"""
Unit tests for window splitting and best-fit selection

Tests fragment thresholds, minute conservation and the deterministic tie-break.
"""

import pytest
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.services.availability_store import (
    excess_minutes,
    find_best_fit,
    minutes_between,
    plan_split,
    window_covers,
)


def t(hour, minute=0):
    return datetime(2031, 3, 4, hour, minute)


@dataclass
class FakeWindow:
    id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool = False


class TestPlanSplit:
    """Fragments around a reservation (threshold 30 minutes)"""

    def test_both_slivers_discarded(self):
        """[10:00,11:00) reserving [10:15,10:45) leaves two 15-minute slivers"""
        split = plan_split(t(10), t(11), t(10, 15), t(10, 45))

        assert split.before is None
        assert split.after is None
        assert split.fragments == []
        assert split.before_minutes == 15
        assert split.after_minutes == 15
        assert split.discarded_minutes == 30

    def test_both_fragments_kept(self):
        """[09:00,11:00) reserving [09:30,10:00) keeps 30 and 60 minutes"""
        split = plan_split(t(9), t(11), t(9, 30), t(10))

        assert split.before == (t(9), t(9, 30))
        assert split.after == (t(10), t(11))
        assert split.before_minutes_reclaimed == 30
        assert split.after_minutes_reclaimed == 60
        assert split.discarded_minutes == 0

    def test_exact_fit_leaves_nothing(self):
        split = plan_split(t(9), t(10), t(9), t(10))

        assert split.fragments == []
        assert split.discarded_minutes == 0
        assert split.reserved_minutes == 60

    def test_threshold_is_inclusive(self):
        split = plan_split(t(9), t(11), t(9, 29), t(10, 30))

        assert split.before is None  # 29 minutes
        assert split.after == (t(10, 30), t(11))  # 30 minutes

    def test_custom_threshold(self):
        split = plan_split(t(9), t(11), t(9, 15), t(10), min_remainder=15)

        assert split.before == (t(9), t(9, 15))

    @pytest.mark.parametrize(
        "start,end",
        [
            (t(8, 30), t(9, 30)),   # starts before the window
            (t(10, 30), t(11, 30)),  # ends after the window
            (t(10), t(10)),          # empty interval
        ],
    )
    def test_interval_outside_window_raises(self, start, end):
        with pytest.raises(ValueError, match="not contained"):
            plan_split(t(9), t(11), start, end)

    @pytest.mark.parametrize("offset,length", [(0, 30), (10, 45), (29, 31), (45, 60), (90, 30), (5, 110)])
    def test_minutes_are_conserved(self, offset, length):
        """before + reserved + after + discarded == window length"""
        window_start, window_end = t(9), t(11)
        start = window_start + timedelta(minutes=offset)
        end = start + timedelta(minutes=length)

        split = plan_split(window_start, window_end, start, end)

        kept = split.before_minutes_reclaimed + split.after_minutes_reclaimed
        assert kept + split.reserved_minutes + split.discarded_minutes == 120
        for fragment_start, fragment_end in split.fragments:
            assert minutes_between(fragment_start, fragment_end) >= 30


class TestBestFit:
    """Least-excess covering window"""

    def test_prefers_least_excess(self):
        windows = [
            FakeWindow(1, t(8), t(12)),
            FakeWindow(2, t(9, 30), t(11)),
            FakeWindow(3, t(10), t(11, 30)),
        ]
        best = find_best_fit(windows, t(10), t(11))

        assert best.id == 2
        assert excess_minutes(best, t(10), t(11)) == 30

    def test_tie_goes_to_earliest_start_then_lowest_id(self):
        windows = [
            FakeWindow(7, t(10), t(11, 30)),
            FakeWindow(5, t(9, 30), t(11)),
            FakeWindow(4, t(9, 30), t(11)),
        ]
        assert find_best_fit(windows, t(10), t(11)).id == 4
        assert find_best_fit(list(reversed(windows)), t(10), t(11)).id == 4

    def test_containment_is_inclusive_at_both_ends(self):
        window = FakeWindow(1, t(10), t(11))

        assert window_covers(window, t(10), t(11))
        assert find_best_fit([window], t(10), t(11)) is window

    def test_booked_and_partial_windows_ignored(self):
        windows = [
            FakeWindow(1, t(10), t(11), is_booked=True),
            FakeWindow(2, t(10, 30), t(12)),
            FakeWindow(3, t(9), t(10, 30)),
        ]
        assert find_best_fit(windows, t(10), t(11)) is None

    def test_empty_input(self):
        assert find_best_fit([], t(10), t(11)) is None
