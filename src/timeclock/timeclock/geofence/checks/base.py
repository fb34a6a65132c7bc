from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...core.enums import VerificationFlag
from ..model import GeofencePolicy, GeofenceTarget, LocationSample


@dataclass(frozen=True)
class CheckContext:
    sample: LocationSample
    target: GeofenceTarget
    policy: GeofencePolicy
    distance_meters: float
    now: datetime
    previous: Optional[LocationSample] = None


class LocationCheck(ABC):
    """Strategy Pattern: one anti-spoofing heuristic over a location sample."""

    @abstractmethod
    def evaluate(self, ctx: CheckContext) -> Optional[VerificationFlag]:
        raise NotImplementedError
