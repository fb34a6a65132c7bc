from __future__ import annotations

from datetime import date, datetime
from typing import ContextManager, Optional, Protocol, Sequence

from ..core.enums import LocationStatus
from ..geofence.model import LocationSample, VerificationResult
from .model import Shift


class ShiftRepository(Protocol):
    def lock_user(self, user_id: str) -> ContextManager[None]:
        """Serialize clock-in/clock-out for one user (lookup + write as a unit)."""

        raise NotImplementedError

    def lock_shift(self, shift_id: str) -> ContextManager[None]:
        raise NotImplementedError

    def list_open_for_user(self, user_id: str) -> Sequence[Shift]:
        """Every open shift of the user, newest ``clock_in_at`` first."""

        raise NotImplementedError

    def get_by_id(self, shift_id: str) -> Optional[Shift]:
        raise NotImplementedError

    def create_open(self, shift: Shift) -> bool:
        """Insert an open shift; False when the user already holds one."""

        raise NotImplementedError

    def close(
        self,
        *,
        shift_id: str,
        clock_out_at: datetime,
        clock_out_location: Optional[LocationSample],
        clock_out_verification: Optional[VerificationResult],
        clock_out_location_status: LocationStatus,
        duration_minutes: int,
        break_minutes: int,
        net_duration_minutes: int,
        note: Optional[str] = None,
        override_request_id: Optional[str] = None,
    ) -> bool:
        """open -> closed, compare-and-set on status. False if the shift was no longer open."""

        raise NotImplementedError

    def revise(
        self,
        *,
        shift_id: str,
        clock_out_at: datetime,
        duration_minutes: int,
        break_minutes: int,
        net_duration_minutes: int,
        resolution_note: str,
        revised_by: str,
        revised_at: datetime,
    ) -> bool:
        """open -> (stale) -> revised, compare-and-set on status."""

        raise NotImplementedError

    def list_open_started_before(self, *, organization_id: str, cutoff: datetime) -> Sequence[Shift]:
        raise NotImplementedError

    def list_recent_for_user(self, user_id: str, limit: int) -> Sequence[Shift]:
        raise NotImplementedError

    def list_for_report(
        self,
        *,
        organization_id: str,
        start_date: date,
        end_date: date,
        user_id: Optional[str] = None,
    ) -> Sequence[Shift]:
        """Closed and revised shifts whose shift_date falls in [start_date, end_date]."""

        raise NotImplementedError
