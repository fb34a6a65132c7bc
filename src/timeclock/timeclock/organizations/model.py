from __future__ import annotations

from dataclasses import dataclass, field

from ..core.constants import (
    DEFAULT_BREAK_MINUTES,
    DEFAULT_BREAK_THRESHOLD_HOURS,
    DEFAULT_REASON_MIN_LENGTH,
    DEFAULT_REQUEST_TTL_HOURS,
    DEFAULT_STALE_THRESHOLD_HOURS,
    DEFAULT_TIMEZONE,
)
from ..core.enums import AttributionPolicy
from ..geofence.model import GeofencePolicy
from ..shifts.attribution import attribution_for
from ..shifts.breaks.threshold_policy import ThresholdBreakPolicy
from ..shifts.duration import DurationCalculator


@dataclass(frozen=True)
class OrganizationPolicy:
    """Effective per-organization settings (defaults merged with stored overrides)."""

    organization_id: str
    timezone: str = DEFAULT_TIMEZONE
    stale_threshold_hours: float = DEFAULT_STALE_THRESHOLD_HOURS
    break_threshold_hours: float = DEFAULT_BREAK_THRESHOLD_HOURS
    break_minutes: int = DEFAULT_BREAK_MINUTES
    geofence: GeofencePolicy = field(default_factory=GeofencePolicy)
    out_of_range_reason_min_length: int = DEFAULT_REASON_MIN_LENGTH
    request_ttl_hours: float = DEFAULT_REQUEST_TTL_HOURS
    attribution_policy: AttributionPolicy = AttributionPolicy.START_DATE
    strict_mode: bool = False

    def duration_calculator(self) -> DurationCalculator:
        return DurationCalculator(self.timezone, attribution=attribution_for(self.attribution_policy))

    def break_policy(self) -> ThresholdBreakPolicy:
        return ThresholdBreakPolicy(self.break_threshold_hours, self.break_minutes)
