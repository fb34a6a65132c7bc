from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import LocationStatus, ShiftStatus
from ..geofence.model import LocationSample, VerificationResult
from .duration import DurationBreakdown


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Shift:
    """Domain entity: one work session for one employee. Never deleted."""

    shift_id: str
    user_id: str
    organization_id: str
    location_id: Optional[str]
    status: ShiftStatus
    clock_in_at: datetime
    shift_date: date
    clock_in_location: Optional[LocationSample] = None
    clock_in_verification: Optional[VerificationResult] = None
    clock_in_location_status: LocationStatus = LocationStatus.UNKNOWN
    clock_in_note: Optional[str] = None
    clock_out_at: Optional[datetime] = None
    clock_out_location: Optional[LocationSample] = None
    clock_out_verification: Optional[VerificationResult] = None
    clock_out_location_status: Optional[LocationStatus] = None
    clock_out_note: Optional[str] = None
    duration_minutes: Optional[int] = None
    break_minutes: Optional[int] = None
    net_duration_minutes: Optional[int] = None
    is_revised: bool = False
    resolution_note: Optional[str] = None
    revised_by: Optional[str] = None
    revised_at: Optional[datetime] = None
    marked_stale_at: Optional[datetime] = None
    override_request_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == ShiftStatus.OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.shift_id,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "location_id": self.location_id,
            "status": self.status.value,
            "clock_in_at": _iso(self.clock_in_at),
            "clock_out_at": _iso(self.clock_out_at),
            "shift_date": self.shift_date.isoformat(),
            "clock_in_location": self.clock_in_location.to_dict() if self.clock_in_location else None,
            "clock_in_verification": self.clock_in_verification.to_dict() if self.clock_in_verification else None,
            "clock_in_location_status": self.clock_in_location_status.value,
            "clock_in_note": self.clock_in_note,
            "clock_out_location": self.clock_out_location.to_dict() if self.clock_out_location else None,
            "clock_out_verification": self.clock_out_verification.to_dict() if self.clock_out_verification else None,
            "clock_out_location_status": (
                self.clock_out_location_status.value if self.clock_out_location_status else None
            ),
            "clock_out_note": self.clock_out_note,
            "duration_minutes": self.duration_minutes,
            "break_minutes": self.break_minutes,
            "net_duration_minutes": self.net_duration_minutes,
            "is_revised": self.is_revised,
            "resolution_note": self.resolution_note,
            "revised_by": self.revised_by,
            "revised_at": _iso(self.revised_at),
            "override_request_id": self.override_request_id,
        }


@dataclass(frozen=True)
class ClockOutResult:
    shift: Shift
    duration: DurationBreakdown
    break_minutes: int
    net_minutes: int

    def to_dict(self) -> dict:
        return {
            "success": True,
            "shift": self.shift.to_dict(),
            "duration": {
                "total": self.duration.formatted,
                "total_minutes": self.duration.total_minutes,
                "net_minutes": self.net_minutes,
                "break_minutes": self.break_minutes,
                "crossed_midnight": self.duration.crossed_midnight,
                "attributed_date": self.duration.attributed_date.isoformat(),
            },
        }
