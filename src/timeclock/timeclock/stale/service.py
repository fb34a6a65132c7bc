from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from ..audit.service import AuditTrail
from ..common.datetime_utils import now_utc, to_utc
from ..core.enums import AuditAction, Role, ShiftStatus, StaleResolution
from ..core.exceptions import (
    AuthorizationError,
    InvalidInterval,
    ShiftNotFound,
    ShiftNotOpen,
    ValidationError,
)
from ..organizations.service import OrganizationPolicyService
from ..shifts.duration import format_minutes
from ..shifts.model import Shift
from ..shifts.repository import ShiftRepository
from .model import StaleShift

logger = logging.getLogger(__name__)


def is_stale(shift: Shift, now: datetime, threshold_hours: float) -> bool:
    """Read-time predicate: open and started more than ``threshold_hours`` ago."""
    if shift.status != ShiftStatus.OPEN:
        return False
    return to_utc(now) - to_utc(shift.clock_in_at) > timedelta(hours=threshold_hours)


def hours_open(shift: Shift, now: datetime) -> float:
    return round((to_utc(now) - to_utc(shift.clock_in_at)).total_seconds() / 3600, 1)


class StaleShiftService:
    """Finds shifts nobody clocked out of and lets a manager close them."""

    def __init__(
        self,
        shifts: ShiftRepository,
        policies: OrganizationPolicyService,
        *,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._shifts = shifts
        self._policies = policies
        self._audit = audit
        self._clock = clock

    def is_stale(self, shift: Shift, *, now: Optional[datetime] = None) -> bool:
        policy = self._policies.for_organization(shift.organization_id)
        return is_stale(shift, now or self._clock(), policy.stale_threshold_hours)

    def list_stale(self, organization_id: str, *, now: Optional[datetime] = None) -> list[StaleShift]:
        policy = self._policies.for_organization(organization_id)
        now = to_utc(now or self._clock())
        cutoff = now - timedelta(hours=policy.stale_threshold_hours)

        candidates = self._shifts.list_open_started_before(organization_id=organization_id, cutoff=cutoff)
        return [
            StaleShift(shift=s, hours_open=hours_open(s, now))
            for s in candidates
            if is_stale(s, now, policy.stale_threshold_hours)
        ]

    def sweep(self, *, now: Optional[datetime] = None) -> dict[str, list[StaleShift]]:
        """Read-only pass over every active organization, for a periodic job."""
        now = to_utc(now or self._clock())
        found: dict[str, list[StaleShift]] = {}
        for organization_id in self._policies.list_active_ids():
            stale = self.list_stale(organization_id, now=now)
            if stale:
                found[organization_id] = stale
                logger.info(
                    "Found %d stale shift(s)",
                    len(stale),
                    extra={"organization_id": organization_id},
                )
        logger.info("Stale shift sweep finished: %d organization(s) affected", len(found))
        return found

    def resolve(
        self,
        shift_id: str,
        resolution: Union[StaleResolution, str],
        actual_clock_out: Optional[datetime] = None,
        *,
        actor_id: str,
        actor_role: Union[Role, str],
        organization_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Shift:
        try:
            role = Role(actor_role)
            resolution = StaleResolution(resolution)
        except ValueError as exc:
            raise ValidationError(str(exc))

        if not role.is_manager:
            raise AuthorizationError("Only managers can resolve stale shifts")

        with self._shifts.lock_shift(shift_id):
            shift = self._shifts.get_by_id(shift_id)
            if shift is None or (organization_id and shift.organization_id != organization_id):
                raise ShiftNotFound(shift_id=shift_id)
            if not shift.status.can_reach(ShiftStatus.REVISED):
                raise ShiftNotOpen(shift_id=shift_id, status=shift.status.value)

            policy = self._policies.for_organization(shift.organization_id)
            calc = policy.duration_calculator()
            now = to_utc(now or self._clock(), calc.timezone)

            if resolution == StaleResolution.FORGOT:
                clock_out_at = shift.clock_in_at
                minutes = 0
                detail = "Employee forgot to clock out"
            else:
                if actual_clock_out is None:
                    raise InvalidInterval("actual_clock_out is required for actual_hours")
                clock_out_at = to_utc(actual_clock_out, calc.timezone)
                if clock_out_at > now:
                    raise InvalidInterval("Actual clock-out cannot be in the future")
                # Manager-entered hours are taken as net; no auto break.
                minutes = calc.compute(shift.clock_in_at, clock_out_at).total_minutes
                detail = f"Actual hours recorded ({format_minutes(minutes)})"

            note = f"Stale shift resolved by {actor_id}: {detail}"
            ok = self._shifts.revise(
                shift_id=shift_id,
                clock_out_at=clock_out_at,
                duration_minutes=minutes,
                break_minutes=0,
                net_duration_minutes=minutes,
                resolution_note=note,
                revised_by=actor_id,
                revised_at=now,
            )
            if not ok:
                raise ShiftNotOpen(shift_id=shift_id)

        revised = replace(
            shift,
            status=ShiftStatus.REVISED,
            clock_out_at=clock_out_at,
            duration_minutes=minutes,
            break_minutes=0,
            net_duration_minutes=minutes,
            is_revised=True,
            resolution_note=note,
            revised_by=actor_id,
            revised_at=now,
            marked_stale_at=shift.marked_stale_at or now,
        )

        if self._audit is not None:
            self._audit.record(
                AuditAction.SHIFT_REVISED,
                organization_id=shift.organization_id,
                entity_type="shift",
                entity_id=shift_id,
                at=now,
                actor_id=actor_id,
                resolution=resolution.value,
                duration_minutes=minutes,
                note=note,
            )
        logger.info(
            "Stale shift resolved (%s)",
            resolution.value,
            extra={"shift_id": shift_id, "user_id": shift.user_id, "actor_id": actor_id},
        )
        return revised
