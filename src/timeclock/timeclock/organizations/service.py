from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..common.datetime_utils import resolve_timezone
from ..common.validators import require_range
from ..core.enums import AttributionPolicy
from ..core.exceptions import ValidationError
from ..geofence.model import GeofencePolicy
from .model import OrganizationPolicy
from .repository import OrganizationRepository

logger = logging.getLogger(__name__)

# key -> (type, minimum). Minimums are inclusive.
_NUMERIC_SETTINGS: dict[str, tuple[type, float]] = {
    "stale_threshold_hours": (float, 1),
    "break_threshold_hours": (float, 0),
    "break_minutes": (int, 0),
    "max_acceptable_accuracy_meters": (float, 0),
    "max_timestamp_age_ms": (int, 0),
    "max_plausible_speed_kmh": (float, 0),
    "out_of_range_reason_min_length": (int, 0),
    "request_ttl_hours": (float, 0),
}
_BOOL_SETTINGS = {"require_recent_timestamp", "strict_mode"}
KNOWN_SETTINGS = frozenset(_NUMERIC_SETTINGS) | _BOOL_SETTINGS | {"timezone", "attribution_policy"}


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in {"1", "true", "yes", "0", "false", "no"}:
        return value.strip().lower() in {"1", "true", "yes"}
    raise ValidationError(f"{key} must be a boolean")


def _validate_setting(key: str, value: Any) -> Any:
    if key in _NUMERIC_SETTINGS:
        kind, minimum = _NUMERIC_SETTINGS[key]
        if key == "max_plausible_speed_kmh" and value is None:
            return None
        return kind(require_range(value, key, minimum=minimum))
    if key in _BOOL_SETTINGS:
        return _as_bool(key, value)
    if key == "timezone":
        resolve_timezone(value)
        return str(value)
    if key == "attribution_policy":
        try:
            return AttributionPolicy(value)
        except ValueError:
            raise ValidationError(f"attribution_policy must be one of {[p.value for p in AttributionPolicy]}")
    raise ValidationError(f"Unknown policy setting: {key}")


def validate_settings(settings: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce and range-check a settings mapping. Unknown keys are rejected."""

    unknown = set(settings) - KNOWN_SETTINGS
    if unknown:
        raise ValidationError(f"Unknown policy settings: {', '.join(sorted(unknown))}")
    return {key: _validate_setting(key, value) for key, value in settings.items()}


def usable_settings(settings: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Split stored settings into the valid ones and the names of those that are not."""
    clean: dict[str, Any] = {}
    rejected: list[str] = []
    for key, value in settings.items():
        try:
            clean[key] = _validate_setting(key, value)
        except ValidationError:
            rejected.append(key)
    return clean, sorted(rejected)


class OrganizationPolicyService:
    """Resolves the effective policy of an organization.

    Application-wide defaults (``POLICY_DEFAULTS`` in settings) are applied
    first, then the organization's stored overrides.
    """

    def __init__(self, organizations: OrganizationRepository, *, defaults: Optional[Mapping[str, Any]] = None):
        self._organizations = organizations
        self._defaults = validate_settings(defaults or {})

    def for_organization(self, organization_id: str) -> OrganizationPolicy:
        overrides = self._organizations.get_policy_overrides(organization_id)
        if overrides is None:
            raise ValidationError("Organization not found", organization_id=organization_id)

        clean, rejected = usable_settings(overrides)
        if rejected:
            logger.warning(
                "Ignoring invalid stored policy settings: %s",
                ", ".join(rejected),
                extra={"organization_id": organization_id},
            )
        merged = {**self._defaults, **clean}

        return self._build(organization_id, merged)

    def list_active_ids(self):
        return self._organizations.list_active_ids()

    @staticmethod
    def _build(organization_id: str, s: Mapping[str, Any]) -> OrganizationPolicy:
        base = OrganizationPolicy(organization_id=organization_id)
        geo = base.geofence
        geofence = GeofencePolicy(
            max_acceptable_accuracy_meters=s.get("max_acceptable_accuracy_meters", geo.max_acceptable_accuracy_meters),
            require_recent_timestamp=s.get("require_recent_timestamp", geo.require_recent_timestamp),
            max_timestamp_age_ms=s.get("max_timestamp_age_ms", geo.max_timestamp_age_ms),
            max_plausible_speed_kmh=s.get("max_plausible_speed_kmh", geo.max_plausible_speed_kmh),
        )
        return OrganizationPolicy(
            organization_id=organization_id,
            timezone=s.get("timezone", base.timezone),
            stale_threshold_hours=s.get("stale_threshold_hours", base.stale_threshold_hours),
            break_threshold_hours=s.get("break_threshold_hours", base.break_threshold_hours),
            break_minutes=s.get("break_minutes", base.break_minutes),
            geofence=geofence,
            out_of_range_reason_min_length=s.get(
                "out_of_range_reason_min_length", base.out_of_range_reason_min_length
            ),
            request_ttl_hours=s.get("request_ttl_hours", base.request_ttl_hours),
            attribution_policy=s.get("attribution_policy", base.attribution_policy),
            strict_mode=s.get("strict_mode", base.strict_mode),
        )
