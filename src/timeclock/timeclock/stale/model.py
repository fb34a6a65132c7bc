from __future__ import annotations

from dataclasses import dataclass

from ..shifts.model import Shift


@dataclass(frozen=True)
class StaleShift:
    """An open shift older than its organization's stale threshold."""

    shift: Shift
    hours_open: float

    def to_dict(self) -> dict:
        data = self.shift.to_dict()
        data["hours_open"] = self.hours_open
        return data
