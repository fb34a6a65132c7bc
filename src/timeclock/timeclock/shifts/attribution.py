from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta

from ..common.datetime_utils import to_utc
from ..core.enums import AttributionPolicy


class AttributionStrategy(ABC):
    """Strategy Pattern: decide which calendar date a shift is reported under.

    Both datetimes arrive already converted to the organization's local timezone.
    """

    @abstractmethod
    def attributed_date(self, local_in: datetime, local_out: datetime) -> date:
        raise NotImplementedError


class StartDateAttribution(AttributionStrategy):
    """Always the local date the shift started on, even across midnight."""

    def attributed_date(self, local_in: datetime, local_out: datetime) -> date:
        return local_in.date()


class LargerShareAttribution(AttributionStrategy):
    """The local date holding most of the worked minutes; ties go to the start date."""

    def attributed_date(self, local_in: datetime, local_out: datetime) -> date:
        tz = local_in.tzinfo
        best_date = local_in.date()
        best_seconds = -1.0

        day = local_in.date()
        while day <= local_out.date():
            day_start = datetime.combine(day, time.min, tzinfo=tz)
            day_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
            start = max(to_utc(day_start), to_utc(local_in))
            end = min(to_utc(day_end), to_utc(local_out))
            seconds = (end - start).total_seconds()
            if seconds > best_seconds:
                best_seconds = seconds
                best_date = day
            day += timedelta(days=1)

        return best_date


def attribution_for(policy: AttributionPolicy | str) -> AttributionStrategy:
    policy = AttributionPolicy(policy)
    if policy == AttributionPolicy.LARGER_SHARE:
        return LargerShareAttribution()
    return StartDateAttribution()
