from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import now_utc, to_utc
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AuditAction, LocationStatus, RequestType, ShiftStatus
from ..core.exceptions import (
    AlreadyClockedIn,
    IntegrityViolation,
    LocationRejected,
    NoOpenShift,
    OutOfRange,
    ValidationError,
)
from ..geofence.distance import format_distance
from ..geofence.model import GeofenceTarget, LocationSample, VerificationResult
from ..geofence.repository import GeofenceTargetRepository
from ..geofence.verifier import GeofenceVerifier
from ..organizations.model import OrganizationPolicy
from ..organizations.service import OrganizationPolicyService
from ..requests.model import OutOfRangeRequest
from .duration import net_minutes
from .model import ClockOutResult, Shift
from .repository import ShiftRepository

logger = logging.getLogger(__name__)


class ShiftLedger:
    """Clock-in / clock-out against GPS-verified presence.

    Every mutation runs under ``ShiftRepository.lock_user`` so the open-shift
    lookup and the write act as one unit; storage additionally refuses a
    second open shift for the same user.
    """

    def __init__(
        self,
        shifts: ShiftRepository,
        geofences: GeofenceTargetRepository,
        policies: OrganizationPolicyService,
        *,
        verifier: GeofenceVerifier | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._shifts = shifts
        self._geofences = geofences
        self._policies = policies
        self._verifier = verifier or GeofenceVerifier(clock=clock)
        self._audit = audit
        self._clock = clock

    def _find_open_shift(self, user_id: str) -> Optional[Shift]:
        open_shifts = self._shifts.list_open_for_user(user_id)
        if len(open_shifts) > 1:
            ids = [s.shift_id for s in open_shifts]
            logger.error(
                "Multiple open shifts for one user",
                extra={"user_id": user_id, "shift_id": ids},
            )
            raise IntegrityViolation(user_id=user_id, shift_ids=ids)
        return open_shifts[0] if open_shifts else None

    def _resolve_target(
        self,
        organization_id: str,
        sample: LocationSample,
        target: Optional[GeofenceTarget],
        location_id: Optional[str],
    ) -> GeofenceTarget:
        if target is None and location_id:
            target = self._geofences.get_by_id(location_id)
            if target is None:
                raise ValidationError("Location not found", location_id=location_id)

        if target is not None:
            if target.organization_id != organization_id or not target.is_active:
                raise ValidationError("Location is not available for this organization", location_id=target.location_id)
            return target

        targets = self._geofences.list_active_for_organization(organization_id)
        return self._verifier.nearest_target(sample, targets)

    @staticmethod
    def _reject_if_blocked(result: VerificationResult, *, user_id: str, action: str) -> None:
        blocking = result.blocking_flags
        if not blocking:
            return
        flags = sorted(f.value for f in blocking)
        logger.warning(
            "Location rejected at %s",
            action,
            extra={"user_id": user_id, "flags": flags, "distance_meters": round(result.distance_meters, 1)},
        )
        raise LocationRejected(
            f"Could not verify your location ({', '.join(flags)}). Please try again.",
            flags=flags,
            distance_meters=round(result.distance_meters, 1),
        )

    def _record(self, action: AuditAction, shift: Shift, *, at: datetime, actor_id: Optional[str], **details) -> None:
        if self._audit is None:
            return
        self._audit.record(
            action,
            organization_id=shift.organization_id,
            entity_type="shift",
            entity_id=shift.shift_id,
            at=at,
            actor_id=actor_id,
            **details,
        )

    def clock_in(
        self,
        *,
        user_id: str,
        organization_id: str,
        sample: LocationSample,
        target: Optional[GeofenceTarget] = None,
        location_id: Optional[str] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Shift:
        policy = self._policies.for_organization(organization_id)
        calc = policy.duration_calculator()
        now = to_utc(now or self._clock(), calc.timezone)
        sample = sample.in_utc(calc.timezone)

        with self._shifts.lock_user(user_id):
            existing = self._find_open_shift(user_id)
            if existing is not None:
                raise AlreadyClockedIn(shift_id=existing.shift_id)

            target = self._resolve_target(organization_id, sample, target, location_id)
            result = self._verifier.verify(sample, target, policy.geofence, now=now)
            self._reject_if_blocked(result, user_id=user_id, action="clock-in")
            if not result.in_range:
                logger.warning(
                    "Clock-in outside geofence",
                    extra={"user_id": user_id, "organization_id": organization_id,
                           "distance_meters": round(result.distance_meters, 1)},
                )
                raise OutOfRange(
                    f"You are {format_distance(result.distance_meters)} from {target.name}. "
                    "Please submit an out-of-range request.",
                    distance_meters=round(result.distance_meters, 1),
                    radius_meters=target.radius_meters,
                    location_id=target.location_id,
                )

            shift = Shift(
                shift_id=str(uuid.uuid4()),
                user_id=user_id,
                organization_id=organization_id,
                location_id=target.location_id,
                status=ShiftStatus.OPEN,
                clock_in_at=now,
                shift_date=calc.local_date(now),
                clock_in_location=sample,
                clock_in_verification=result,
                clock_in_location_status=result.location_status,
                clock_in_note=note,
            )
            if not self._shifts.create_open(shift):
                raise AlreadyClockedIn()

        self._record(AuditAction.CLOCK_IN, shift, at=now, actor_id=user_id,
                     location_status=shift.clock_in_location_status.value)
        logger.info(
            "Clocked in",
            extra={"user_id": user_id, "organization_id": organization_id, "shift_id": shift.shift_id},
        )
        return shift

    def clock_out(
        self,
        *,
        user_id: str,
        sample: LocationSample,
        target: Optional[GeofenceTarget] = None,
        location_id: Optional[str] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ClockOutResult:
        with self._shifts.lock_user(user_id):
            shift = self._find_open_shift(user_id)
            if shift is None:
                raise NoOpenShift()

            policy = self._policies.for_organization(shift.organization_id)
            tz = policy.duration_calculator().timezone
            now = to_utc(now or self._clock(), tz)
            sample = sample.in_utc(tz)

            target = self._resolve_target(shift.organization_id, sample, target, location_id)
            result = self._verifier.verify(
                sample, target, policy.geofence, previous=shift.clock_in_location, now=now
            )
            self._reject_if_blocked(result, user_id=user_id, action="clock-out")
            if not result.in_range:
                logger.warning(
                    "Clock-out outside geofence recorded",
                    extra={"user_id": user_id, "shift_id": shift.shift_id,
                           "distance_meters": round(result.distance_meters, 1)},
                )

            closed = self._close(
                shift,
                policy,
                clock_out_at=now,
                location=sample,
                verification=result,
                location_status=result.location_status,
                note=note,
            )

        self._record(
            AuditAction.CLOCK_OUT,
            closed.shift,
            at=now,
            actor_id=user_id,
            location_status=result.location_status.value,
            duration_minutes=closed.duration.total_minutes,
        )
        logger.info(
            "Clocked out",
            extra={"user_id": user_id, "organization_id": shift.organization_id, "shift_id": shift.shift_id},
        )
        return closed

    def _close(
        self,
        shift: Shift,
        policy: OrganizationPolicy,
        *,
        clock_out_at: datetime,
        location: Optional[LocationSample],
        verification: Optional[VerificationResult],
        location_status: LocationStatus,
        note: Optional[str] = None,
        override_request_id: Optional[str] = None,
    ) -> ClockOutResult:
        if not shift.status.can_transition_to(ShiftStatus.CLOSED):
            raise NoOpenShift(shift_id=shift.shift_id)

        breakdown = policy.duration_calculator().compute(shift.clock_in_at, clock_out_at)
        brk = policy.break_policy().auto_break_minutes(breakdown.total_minutes)
        net = net_minutes(breakdown.total_minutes, brk)

        ok = self._shifts.close(
            shift_id=shift.shift_id,
            clock_out_at=clock_out_at,
            clock_out_location=location,
            clock_out_verification=verification,
            clock_out_location_status=location_status,
            duration_minutes=breakdown.total_minutes,
            break_minutes=brk,
            net_duration_minutes=net,
            note=note,
            override_request_id=override_request_id,
        )
        if not ok:
            # Resolved or closed by someone else between lookup and write.
            logger.warning("Shift was no longer open at clock-out", extra={"shift_id": shift.shift_id})
            raise NoOpenShift(shift_id=shift.shift_id)

        closed = replace(
            shift,
            status=ShiftStatus.CLOSED,
            clock_out_at=clock_out_at,
            clock_out_location=location,
            clock_out_verification=verification,
            clock_out_location_status=location_status,
            clock_out_note=note,
            duration_minutes=breakdown.total_minutes,
            break_minutes=brk,
            net_duration_minutes=net,
            override_request_id=override_request_id or shift.override_request_id,
        )
        return ClockOutResult(shift=closed, duration=breakdown, break_minutes=brk, net_minutes=net)

    def _override_verification(
        self, request: OutOfRangeRequest, policy: OrganizationPolicy
    ) -> Optional[VerificationResult]:
        if request.location is None:
            return None
        targets = self._geofences.list_active_for_organization(request.organization_id)
        if not targets:
            return None
        location = request.location.in_utc(policy.duration_calculator().timezone)
        return self._verifier.verify_nearest(
            location, targets, policy.geofence, now=location.sample_timestamp
        )

    def apply_override(self, request: OutOfRangeRequest, *, approved_by: str, now: Optional[datetime] = None) -> Shift:
        """Record the clock event of an approved out-of-range request at ``requested_at``.

        Geofence rejection is bypassed; every other rule still applies.
        """
        policy = self._policies.for_organization(request.organization_id)
        calc = policy.duration_calculator()
        at = to_utc(request.requested_at, calc.timezone)
        now = to_utc(now or self._clock(), calc.timezone)
        verification = self._override_verification(request, policy)

        with self._shifts.lock_user(request.user_id):
            current = self._find_open_shift(request.user_id)

            if request.request_type == RequestType.CLOCK_IN:
                if current is not None:
                    raise AlreadyClockedIn(shift_id=current.shift_id)
                shift = Shift(
                    shift_id=str(uuid.uuid4()),
                    user_id=request.user_id,
                    organization_id=request.organization_id,
                    location_id=verification.target_location_id if verification else None,
                    status=ShiftStatus.OPEN,
                    clock_in_at=at,
                    shift_date=calc.local_date(at),
                    clock_in_location=request.location,
                    clock_in_verification=verification,
                    clock_in_location_status=LocationStatus.OUT_OF_RANGE,
                    clock_in_note=request.reason,
                    override_request_id=request.request_id,
                )
                if not self._shifts.create_open(shift):
                    raise AlreadyClockedIn()
                action = AuditAction.CLOCK_IN
            else:
                if current is None or (request.shift_id and current.shift_id != request.shift_id):
                    raise NoOpenShift(shift_id=request.shift_id)
                shift = self._close(
                    current,
                    policy,
                    clock_out_at=at,
                    location=request.location,
                    verification=verification,
                    location_status=LocationStatus.OUT_OF_RANGE,
                    note=request.reason,
                    override_request_id=request.request_id,
                ).shift
                action = AuditAction.CLOCK_OUT

        self._record(action, shift, at=now, actor_id=approved_by, override_request_id=request.request_id)
        logger.info(
            "Out-of-range %s applied",
            request.request_type.value,
            extra={"user_id": request.user_id, "shift_id": shift.shift_id, "request_id": request.request_id},
        )
        return shift

    def current_shift(self, user_id: str) -> Optional[Shift]:
        return self._find_open_shift(user_id)

    def history(self, user_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[Shift]:
        return self._shifts.list_recent_for_user(user_id, int(limit))
