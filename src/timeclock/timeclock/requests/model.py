from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import RequestStatus, RequestType
from ..geofence.model import LocationSample


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class OutOfRangeRequest:
    """An employee's ask to clock in/out although the sample was outside the geofence."""

    request_id: str
    user_id: str
    organization_id: str
    request_type: RequestType
    reason: str
    distance_from_geofence: Optional[float]
    status: RequestStatus
    created_at: datetime
    requested_at: datetime
    expires_at: datetime
    location: Optional[LocationSample] = None
    shift_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewer_note: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "id": self.request_id,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "request_type": self.request_type.value,
            "reason": self.reason,
            "distance_from_geofence": (
                round(self.distance_from_geofence, 1) if self.distance_from_geofence is not None else None
            ),
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "requested_at": _iso(self.requested_at),
            "expires_at": _iso(self.expires_at),
            "location": self.location.to_dict() if self.location else None,
            "shift_id": self.shift_id,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": _iso(self.reviewed_at),
            "reviewer_note": self.reviewer_note,
        }
