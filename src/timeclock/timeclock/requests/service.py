from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Union

from ..audit.service import AuditTrail
from ..common.datetime_utils import now_utc, to_utc
from ..common.validators import require_range
from ..core.enums import AuditAction, RequestStatus, RequestType, Role
from ..core.exceptions import (
    AlreadyClockedIn,
    AuthorizationError,
    NoOpenShift,
    ReasonTooShort,
    RequestExpired,
    RequestNotFound,
    RequestNotPending,
    ValidationError,
)
from ..geofence.distance import haversine_distance
from ..geofence.model import LocationSample
from ..geofence.repository import GeofenceTargetRepository
from ..geofence.verifier import GeofenceVerifier
from ..organizations.service import OrganizationPolicyService
from ..shifts.model import Shift
from ..shifts.service import ShiftLedger
from .model import OutOfRangeRequest
from .repository import OutOfRangeRequestRepository

logger = logging.getLogger(__name__)


def _require_manager(role: Union[Role, str]) -> None:
    try:
        role = Role(role)
    except ValueError:
        raise AuthorizationError()
    if not role.is_manager:
        raise AuthorizationError("Only managers can review out-of-range requests")


class OutOfRangeRequestService:
    """Employee asks, manager decides; approval re-enters the ledger."""

    def __init__(
        self,
        requests: OutOfRangeRequestRepository,
        ledger: ShiftLedger,
        geofences: GeofenceTargetRepository,
        policies: OrganizationPolicyService,
        *,
        verifier: GeofenceVerifier | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._requests = requests
        self._ledger = ledger
        self._geofences = geofences
        self._policies = policies
        self._verifier = verifier or GeofenceVerifier(clock=clock)
        self._audit = audit
        self._clock = clock

    def _record(self, action: AuditAction, req: OutOfRangeRequest, *, at: datetime, actor_id: Optional[str], **details):
        if self._audit is None:
            return
        self._audit.record(
            action,
            organization_id=req.organization_id,
            entity_type="out_of_range_request",
            entity_id=req.request_id,
            at=at,
            actor_id=actor_id,
            **details,
        )

    def _distance(
        self, organization_id: str, sample: Optional[LocationSample], claimed: Optional[float]
    ) -> Optional[float]:
        """Distance to the nearest active location; recomputed server-side when a sample is attached."""
        if sample is not None:
            self._verifier.validate_sample(sample)
            targets = [t for t in self._geofences.list_active_for_organization(organization_id) if t.is_active]
            if targets:
                return min(
                    haversine_distance(sample.latitude, sample.longitude, t.latitude, t.longitude) for t in targets
                )
        if claimed is None:
            return None
        return require_range(claimed, "distance_from_geofence", minimum=0)

    def submit(
        self,
        *,
        user_id: str,
        organization_id: str,
        request_type: Union[RequestType, str],
        reason: str,
        distance_from_geofence: Optional[float] = None,
        sample: Optional[LocationSample] = None,
        requested_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> OutOfRangeRequest:
        policy = self._policies.for_organization(organization_id)
        if policy.strict_mode:
            raise ValidationError("Out-of-range requests are disabled for this organization")

        try:
            request_type = RequestType(request_type)
        except ValueError:
            raise ValidationError(f"request_type must be one of {[t.value for t in RequestType]}")

        reason = (reason or "").strip()
        min_len = policy.out_of_range_reason_min_length
        if len(reason) < min_len:
            raise ReasonTooShort(
                f"Please provide a detailed reason (at least {min_len} characters)",
                min_length=min_len,
            )

        tz = policy.duration_calculator().timezone
        now = to_utc(now or self._clock(), tz)
        requested_at = to_utc(requested_at, tz) if requested_at else now
        if sample is not None:
            sample = sample.in_utc(tz)
        if requested_at > now:
            raise ValidationError("Requested time cannot be in the future")

        distance = self._distance(organization_id, sample, distance_from_geofence)

        current = self._ledger.current_shift(user_id)
        shift_id = None
        if request_type == RequestType.CLOCK_IN:
            if current is not None:
                raise AlreadyClockedIn(shift_id=current.shift_id)
        else:
            if current is None:
                raise NoOpenShift()
            shift_id = current.shift_id

        req = OutOfRangeRequest(
            request_id=str(uuid.uuid4()),
            user_id=user_id,
            organization_id=organization_id,
            request_type=request_type,
            reason=reason,
            distance_from_geofence=distance,
            status=RequestStatus.PENDING,
            created_at=now,
            requested_at=requested_at,
            expires_at=now + timedelta(hours=policy.request_ttl_hours),
            location=sample,
            shift_id=shift_id,
        )
        self._requests.add(req)

        self._record(AuditAction.REQUEST_SUBMITTED, req, at=now, actor_id=user_id, request_type=request_type.value)
        logger.info(
            "Out-of-range request submitted",
            extra={"user_id": user_id, "organization_id": organization_id, "request_id": req.request_id},
        )
        return req

    def _get_pending(self, request_id: str, organization_id: Optional[str], now: datetime) -> OutOfRangeRequest:
        req = self._requests.get_by_id(request_id)
        if req is None or (organization_id and req.organization_id != organization_id):
            raise RequestNotFound(request_id=request_id)
        if not req.is_pending:
            raise RequestNotPending(request_id=request_id, status=req.status.value)
        if req.is_expired(now):
            self._expire(req, now)
            raise RequestExpired(request_id=request_id)
        return req

    def _expire(self, req: OutOfRangeRequest, now: datetime) -> Optional[OutOfRangeRequest]:
        if not self._requests.decide(
            request_id=req.request_id,
            status=RequestStatus.EXPIRED,
            reviewed_by=None,
            reviewed_at=now,
        ):
            return None
        self._record(AuditAction.REQUEST_EXPIRED, req, at=now, actor_id=None)
        logger.info("Out-of-range request expired", extra={"request_id": req.request_id, "user_id": req.user_id})
        return replace(req, status=RequestStatus.EXPIRED, reviewed_at=now)

    def approve(
        self,
        request_id: str,
        *,
        reviewer_id: str,
        reviewer_role: Union[Role, str],
        note: Optional[str] = None,
        organization_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Shift:
        _require_manager(reviewer_role)
        now = to_utc(now or self._clock())
        req = self._get_pending(request_id, organization_id, now)

        shift = self._ledger.apply_override(req, approved_by=reviewer_id, now=now)

        if not self._requests.decide(
            request_id=request_id,
            status=RequestStatus.APPROVED,
            reviewed_by=reviewer_id,
            reviewed_at=now,
            reviewer_note=note,
        ):
            logger.error(
                "Request changed state while its override was applied",
                extra={"request_id": request_id, "shift_id": shift.shift_id},
            )
            raise RequestNotPending(request_id=request_id)

        self._record(AuditAction.REQUEST_APPROVED, req, at=now, actor_id=reviewer_id, shift_id=shift.shift_id)
        logger.info(
            "Out-of-range request approved",
            extra={"request_id": request_id, "actor_id": reviewer_id, "shift_id": shift.shift_id},
        )
        return shift

    def deny(
        self,
        request_id: str,
        *,
        reviewer_id: str,
        reviewer_role: Union[Role, str],
        note: Optional[str] = None,
        organization_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OutOfRangeRequest:
        _require_manager(reviewer_role)
        now = to_utc(now or self._clock())
        req = self._get_pending(request_id, organization_id, now)

        if not self._requests.decide(
            request_id=request_id,
            status=RequestStatus.DENIED,
            reviewed_by=reviewer_id,
            reviewed_at=now,
            reviewer_note=note,
        ):
            raise RequestNotPending(request_id=request_id)

        self._record(AuditAction.REQUEST_DENIED, req, at=now, actor_id=reviewer_id)
        logger.info("Out-of-range request denied", extra={"request_id": request_id, "actor_id": reviewer_id})
        return replace(
            req,
            status=RequestStatus.DENIED,
            reviewed_by=reviewer_id,
            reviewed_at=now,
            reviewer_note=note,
        )

    def expire_overdue(self, *, now: Optional[datetime] = None) -> list[OutOfRangeRequest]:
        now = to_utc(now or self._clock())
        expired = []
        for req in self._requests.list_pending_expired(now=now):
            done = self._expire(req, now)
            if done is not None:
                expired.append(done)
        return expired

    def list_pending(self, organization_id: str) -> Sequence[OutOfRangeRequest]:
        return self._requests.list_pending(organization_id)

    def list_for_user(self, user_id: str, *, limit: int = 50) -> Sequence[OutOfRangeRequest]:
        return self._requests.list_for_user(user_id, limit=int(limit))
