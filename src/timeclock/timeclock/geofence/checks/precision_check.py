from __future__ import annotations

from typing import Optional

from ...core.constants import MIN_COORDINATE_DECIMALS
from ...core.enums import VerificationFlag
from .base import CheckContext, LocationCheck


def _decimals(value: float) -> int:
    text = repr(float(value))
    if "e" in text or "E" in text:
        return 0
    _, _, frac = text.partition(".")
    frac = frac.rstrip("0")
    return len(frac)


class LowPrecisionCheck(LocationCheck):
    """Suspiciously round coordinates (manual entry). Advisory only."""

    def evaluate(self, ctx: CheckContext) -> Optional[VerificationFlag]:
        if (
            _decimals(ctx.sample.latitude) < MIN_COORDINATE_DECIMALS
            or _decimals(ctx.sample.longitude) < MIN_COORDINATE_DECIMALS
        ):
            return VerificationFlag.LOW_PRECISION
        return None
