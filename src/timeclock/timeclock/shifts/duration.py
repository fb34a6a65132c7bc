from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Optional

from ..common.datetime_utils import as_aware, minutes_between, resolve_timezone, to_utc
from ..core.exceptions import InvalidInterval
from .attribution import AttributionStrategy, StartDateAttribution


def format_minutes(total_minutes: int) -> str:
    """``"{H}h {M}m"`` using integer division / modulo."""
    total_minutes = int(total_minutes)
    return f"{total_minutes // 60}h {total_minutes % 60}m"


def net_minutes(total_minutes: int, break_minutes: int) -> int:
    return max(int(total_minutes) - int(break_minutes), 0)


@dataclass(frozen=True)
class DurationBreakdown:
    total_minutes: int
    crossed_midnight: bool
    attributed_date: date
    formatted: str

    @property
    def hours(self) -> int:
        return self.total_minutes // 60

    @property
    def minutes(self) -> int:
        return self.total_minutes % 60

    def to_dict(self) -> dict:
        return {
            "total_minutes": self.total_minutes,
            "crossed_midnight": self.crossed_midnight,
            "attributed_date": self.attributed_date.isoformat(),
            "formatted": self.formatted,
        }


class DurationCalculator:
    """Shift length and date attribution in an organization's local timezone.

    Calendar dates are always taken in the organization's timezone, never the
    server's. Naive datetimes are read as local wall time.
    """

    def __init__(self, timezone: str | tzinfo = "UTC", *, attribution: Optional[AttributionStrategy] = None):
        self._tz = resolve_timezone(timezone)
        self._attribution = attribution or StartDateAttribution()

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def local(self, value: datetime) -> datetime:
        return as_aware(value, self._tz).astimezone(self._tz)

    def local_date(self, value: datetime) -> date:
        return self.local(value).date()

    def compute(self, clock_in_at: datetime, clock_out_at: datetime) -> DurationBreakdown:
        start = to_utc(clock_in_at, self._tz)
        end = to_utc(clock_out_at, self._tz)
        if end <= start:
            raise InvalidInterval(
                clock_in_at=start.isoformat(),
                clock_out_at=end.isoformat(),
            )

        total = minutes_between(start, end)
        local_in = self.local(start)
        local_out = self.local(end)

        return DurationBreakdown(
            total_minutes=total,
            crossed_midnight=local_in.date() != local_out.date(),
            attributed_date=self._attribution.attributed_date(local_in, local_out),
            formatted=format_minutes(total),
        )
