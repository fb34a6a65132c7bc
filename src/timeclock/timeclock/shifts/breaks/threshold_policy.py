from __future__ import annotations

from ...core.constants import DEFAULT_BREAK_MINUTES, DEFAULT_BREAK_THRESHOLD_HOURS
from .base import BreakPolicy


def auto_break_minutes(total_minutes: int, threshold_hours: float, break_minutes: int) -> int:
    if total_minutes >= threshold_hours * 60:
        return int(break_minutes)
    return 0


class ThresholdBreakPolicy(BreakPolicy):
    """Standard rule: deduct a fixed break once the shift reaches the threshold."""

    def __init__(
        self,
        threshold_hours: float = DEFAULT_BREAK_THRESHOLD_HOURS,
        break_minutes: int = DEFAULT_BREAK_MINUTES,
    ):
        self.threshold_hours = threshold_hours
        self.break_minutes = int(break_minutes)

    def auto_break_minutes(self, total_minutes: int) -> int:
        return auto_break_minutes(total_minutes, self.threshold_hours, self.break_minutes)
