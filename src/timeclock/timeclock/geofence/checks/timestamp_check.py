from __future__ import annotations

from typing import Optional

from ...common.datetime_utils import to_utc
from ...core.enums import VerificationFlag
from .base import CheckContext, LocationCheck


class TimestampFreshnessCheck(LocationCheck):
    """Sample older than ``max_timestamp_age_ms`` (replayed or cached fix)."""

    def evaluate(self, ctx: CheckContext) -> Optional[VerificationFlag]:
        age_ms = (to_utc(ctx.now) - to_utc(ctx.sample.sample_timestamp)).total_seconds() * 1000
        if age_ms > ctx.policy.max_timestamp_age_ms:
            return VerificationFlag.TIMESTAMP_STALE
        return None
