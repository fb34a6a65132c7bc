from __future__ import annotations

from dataclasses import dataclass

from .checks.accuracy_check import AccuracyCheck
from .checks.base import LocationCheck
from .checks.precision_check import LowPrecisionCheck
from .checks.speed_check import ImplausibleSpeedCheck
from .checks.timestamp_check import TimestampFreshnessCheck
from .model import GeofencePolicy


@dataclass
class LocationCheckFactory:
    """Factory Pattern: pick the anti-spoofing checks a policy asks for."""

    include_precision_check: bool = True

    def for_policy(self, policy: GeofencePolicy) -> list[LocationCheck]:
        checks: list[LocationCheck] = [AccuracyCheck()]
        if policy.require_recent_timestamp:
            checks.append(TimestampFreshnessCheck())
        if policy.max_plausible_speed_kmh:
            checks.append(ImplausibleSpeedCheck())
        if self.include_precision_check:
            checks.append(LowPrecisionCheck())
        return checks
