from __future__ import annotations

import pytest

from src.timeclock.timeclock.shifts.breaks.threshold_policy import ThresholdBreakPolicy, auto_break_minutes
from src.timeclock.timeclock.shifts.duration import net_minutes


@pytest.mark.parametrize(
    "total, expected",
    [(0, 0), (359, 0), (360, 30), (361, 30), (720, 30)],
)
def test_default_threshold(total, expected):
    assert ThresholdBreakPolicy().auto_break_minutes(total) == expected


def test_custom_threshold_and_length():
    policy = ThresholdBreakPolicy(threshold_hours=8, break_minutes=45)
    assert policy.auto_break_minutes(479) == 0
    assert policy.auto_break_minutes(480) == 45


def test_fractional_threshold():
    assert auto_break_minutes(270, 4.5, 15) == 15
    assert auto_break_minutes(269, 4.5, 15) == 0


def test_zero_threshold_always_deducts():
    assert auto_break_minutes(1, 0, 10) == 10


@pytest.mark.parametrize("total, brk", [(0, 30), (10, 30), (30, 30), (480, 30)])
def test_net_is_never_negative(total, brk):
    assert net_minutes(total, brk) == max(total - brk, 0)
    assert net_minutes(total, brk) >= 0
