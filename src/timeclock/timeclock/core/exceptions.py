from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base exception for business rule violations.

    Each subclass carries a stable ``code`` that callers surface instead of a stack trace.
    """

    code = "domain_error"
    http_status = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, **details: Any):
        super().__init__(message or self.default_message)
        self.details = details

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.code, "message": str(self)}
        payload.update(self.details)
        return payload


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "validation_error"
    default_message = "Invalid input"


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    code = "forbidden"
    http_status = 403
    default_message = "Not authorized"


class AlreadyClockedIn(DomainError):
    code = "already_clocked_in"
    http_status = 409
    default_message = "You already have an open shift. Please clock out first."


class NoOpenShift(DomainError):
    code = "no_open_shift"
    http_status = 409
    default_message = "No active shift found. Please clock in first."


class LocationRejected(DomainError):
    """Geofence verification failed with a blocking flag; retry with a fresh sample."""

    code = "location_rejected"
    http_status = 422
    default_message = "Could not verify your location"


class OutOfRange(LocationRejected):
    """Sample is outside the geofence but otherwise trustworthy.

    Callers route this to an out-of-range request instead of retrying.
    """

    code = "out_of_range"
    default_message = "You are outside the allowed area"

    def __init__(self, message: str | None = None, **details: Any):
        details.setdefault("requires_request", True)
        super().__init__(message, **details)


class InvalidInterval(ValidationError):
    code = "invalid_interval"
    default_message = "Clock-out must be after clock-in"


class ShiftNotOpen(DomainError):
    code = "shift_not_open"
    http_status = 409
    default_message = "Shift is not open"


class ShiftNotFound(DomainError):
    code = "shift_not_found"
    http_status = 404
    default_message = "Shift not found"


class ReasonTooShort(ValidationError):
    code = "reason_too_short"
    default_message = "Please provide a detailed reason"


class IntegrityViolation(DomainError):
    """More than one open shift exists for a user. Needs manual data repair."""

    code = "integrity_violation"
    http_status = 500
    default_message = "Shift data is inconsistent; contact an administrator"


class GeofenceNotConfigured(DomainError):
    code = "geofence_not_configured"
    http_status = 422
    default_message = "No active location is configured for this organization"


class RequestNotFound(DomainError):
    code = "request_not_found"
    http_status = 404
    default_message = "Request not found"


class RequestNotPending(DomainError):
    code = "request_not_pending"
    http_status = 409
    default_message = "Request has already been processed"


class RequestExpired(DomainError):
    code = "request_expired"
    http_status = 409
    default_message = "Request has expired"


class InvalidLocation(ValidationError):
    code = "invalid_location"
    default_message = "Location sample is invalid"
