from __future__ import annotations

from typing import Optional

from ...core.enums import VerificationFlag
from .base import CheckContext, LocationCheck


class AccuracyCheck(LocationCheck):
    """Horizontal accuracy worse than the policy allows."""

    def evaluate(self, ctx: CheckContext) -> Optional[VerificationFlag]:
        if ctx.sample.accuracy_meters > ctx.policy.max_acceptable_accuracy_meters:
            return VerificationFlag.ACCURACY_TOO_LOW
        return None
