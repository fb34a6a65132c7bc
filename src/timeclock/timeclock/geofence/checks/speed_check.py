from __future__ import annotations

from typing import Optional

from ...common.datetime_utils import to_utc
from ...core.enums import VerificationFlag
from ..distance import haversine_distance
from .base import CheckContext, LocationCheck


class ImplausibleSpeedCheck(LocationCheck):
    """Movement between the previous and current sample faster than any real traveller."""

    def evaluate(self, ctx: CheckContext) -> Optional[VerificationFlag]:
        prev = ctx.previous
        limit = ctx.policy.max_plausible_speed_kmh
        if prev is None or not limit:
            return None

        seconds = (to_utc(ctx.sample.sample_timestamp) - to_utc(prev.sample_timestamp)).total_seconds()
        if seconds <= 0:
            return None

        meters = haversine_distance(prev.latitude, prev.longitude, ctx.sample.latitude, ctx.sample.longitude)
        speed_kmh = meters / seconds * 3.6
        if speed_kmh > limit:
            return VerificationFlag.IMPLAUSIBLE_SPEED
        return None
