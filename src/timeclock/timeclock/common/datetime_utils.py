from __future__ import annotations

import math
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.exceptions import ValidationError


def now_utc() -> datetime:
    """Current time as an aware UTC datetime.

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc)


def resolve_timezone(value: str | tzinfo) -> tzinfo:
    if isinstance(value, tzinfo):
        return value
    try:
        return ZoneInfo(str(value))
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {value!r}")


def as_aware(value: datetime, tz: tzinfo) -> datetime:
    """Attach ``tz`` to naive datetimes (read as local wall time); leave aware ones alone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def to_utc(value: datetime, tz: tzinfo = timezone.utc) -> datetime:
    return as_aware(value, tz).astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded half up.

    Both values are compared in UTC so DST transitions are counted correctly.
    """
    seconds = (to_utc(end) - to_utc(start)).total_seconds()
    return int(math.floor(seconds / 60 + 0.5))


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; a trailing ``Z`` is accepted as UTC."""
    v = (value or "").strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r}")


def from_epoch_ms(value: float) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
