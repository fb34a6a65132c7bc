from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization checks."""

    SUPER_ADMIN = "super_admin"
    ORG_ADMIN = "org_admin"
    ORG_MANAGER = "org_manager"
    EMPLOYEE = "employee"

    @property
    def is_manager(self) -> bool:
        return self in {Role.SUPER_ADMIN, Role.ORG_ADMIN, Role.ORG_MANAGER}


class ShiftStatus(str, Enum):
    """Shift lifecycle. closed and revised are terminal."""

    OPEN = "open"
    CLOSED = "closed"
    STALE = "stale"
    REVISED = "revised"

    def can_transition_to(self, target: "ShiftStatus") -> bool:
        return target in _SHIFT_TRANSITIONS.get(self, frozenset())

    def can_reach(self, target: "ShiftStatus") -> bool:
        """True when ``target`` follows from this status in one or more steps."""
        pending = set(_SHIFT_TRANSITIONS.get(self, frozenset()))
        seen = set()
        while pending:
            status = pending.pop()
            if status == target:
                return True
            seen.add(status)
            pending |= _SHIFT_TRANSITIONS.get(status, frozenset()) - seen
        return False


_SHIFT_TRANSITIONS = {
    ShiftStatus.OPEN: frozenset({ShiftStatus.CLOSED, ShiftStatus.STALE}),
    ShiftStatus.STALE: frozenset({ShiftStatus.REVISED}),
}


class LocationStatus(str, Enum):
    IN_RANGE = "in_range"
    OUT_OF_RANGE = "out_of_range"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


class VerificationFlag(str, Enum):
    """Tagged outcome of one location check.

    Blocking flags fail verification on their own; advisory ones are only recorded.
    """

    ACCURACY_TOO_LOW = "accuracy_too_low"
    TIMESTAMP_STALE = "timestamp_stale"
    IMPLAUSIBLE_SPEED = "implausible_speed"
    OUT_OF_RANGE = "out_of_range"
    LOW_PRECISION = "low_precision"

    @property
    def is_blocking(self) -> bool:
        return self in _BLOCKING_FLAGS


_BLOCKING_FLAGS = frozenset(
    {
        VerificationFlag.ACCURACY_TOO_LOW,
        VerificationFlag.TIMESTAMP_STALE,
        VerificationFlag.IMPLAUSIBLE_SPEED,
    }
)


class RequestType(str, Enum):
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"


class RequestStatus(str, Enum):
    """Out-of-range request approval flow."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


class StaleResolution(str, Enum):
    FORGOT = "forgot"
    ACTUAL_HOURS = "actual_hours"


class AttributionPolicy(str, Enum):
    """Which calendar date a midnight-crossing shift is reported under."""

    START_DATE = "start_date"
    LARGER_SHARE = "larger_share"


class AuditAction(str, Enum):
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    REQUEST_SUBMITTED = "request_submitted"
    REQUEST_APPROVED = "request_approved"
    REQUEST_DENIED = "request_denied"
    REQUEST_EXPIRED = "request_expired"
    SHIFT_REVISED = "shift_revised"
