from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import Any, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import DomainError, InvalidLocation, ValidationError
from ..geofence.model import LocationSample
from .datetime_utils import from_epoch_ms, now_utc, parse_iso_datetime

logger = logging.getLogger(__name__)


def login_required(view):
    """Session is populated by the upstream sign-in (user_id, organization_id, role)."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"success": False, "error": "unauthorized", "message": "Please sign in"}), 401
        return view(*args, **kwargs)

    return wrapper


def manager_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"success": False, "error": "unauthorized", "message": "Please sign in"}), 401
        if not current_role().is_manager:
            return jsonify({"success": False, "error": "forbidden", "message": "Managers only"}), 403
        return view(*args, **kwargs)

    return wrapper


def current_role() -> Role:
    try:
        return Role(session.get("role") or Role.EMPLOYEE.value)
    except ValueError:
        return Role.EMPLOYEE


def current_user() -> dict:
    return {
        "user_id": str(session["user_id"]),
        "organization_id": str(session.get("organization_id") or ""),
        "role": current_role(),
    }


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Epoch milliseconds (mobile clients) or an ISO-8601 string."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a timestamp")
    if isinstance(value, (int, float)):
        return from_epoch_ms(value)
    if isinstance(value, str) and value.strip():
        return parse_iso_datetime(value)
    raise ValidationError(f"{field_name} must be a timestamp")


def parse_location(data: Optional[dict], *, required: bool = True) -> Optional[LocationSample]:
    """Build a LocationSample from ``{"latitude", "longitude", "accuracy", "timestamp", ...}``."""
    if not data:
        if required:
            raise InvalidLocation("Location is required")
        return None
    if not isinstance(data, dict):
        raise InvalidLocation("Location must be an object")

    missing = [k for k in ("latitude", "longitude", "accuracy") if data.get(k) is None]
    if missing:
        raise InvalidLocation(f"Location is missing: {', '.join(missing)}")

    raw_ts = data.get("timestamp")
    try:
        return LocationSample(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy_meters=float(data["accuracy"]),
            sample_timestamp=parse_timestamp(raw_ts) if raw_ts is not None else now_utc(),
            speed=_optional_float(data.get("speed")),
            heading=_optional_float(data.get("heading")),
            altitude=_optional_float(data.get("altitude")),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidLocation(f"Location is invalid: {exc}")


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.name.lower().replace(" ", "_"), "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.path, "method": request.method})
        return jsonify({"success": False, "error": "internal_error", "message": "Internal server error"}), 500

    @app.after_request
    def log_request(response):
        if request.path.startswith("/api/"):
            logger.info(
                "%s %s",
                request.method,
                request.path,
                extra={"path": request.path, "method": request.method, "status_code": response.status_code},
            )
        return response
