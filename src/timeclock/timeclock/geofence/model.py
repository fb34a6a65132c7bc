from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, tzinfo
from typing import FrozenSet, Optional

from ..common.datetime_utils import parse_iso_datetime, to_utc
from ..core.constants import (
    DEFAULT_MAX_ACCURACY_METERS,
    DEFAULT_MAX_PLAUSIBLE_SPEED_KMH,
    DEFAULT_MAX_TIMESTAMP_AGE_MS,
)
from ..core.enums import LocationStatus, VerificationFlag


@dataclass(frozen=True)
class LocationSample:
    """One GPS fix reported by the mobile client."""

    latitude: float
    longitude: float
    accuracy_meters: float
    sample_timestamp: datetime
    speed: Optional[float] = None
    heading: Optional[float] = None
    altitude: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy_meters": self.accuracy_meters,
            "sample_timestamp": self.sample_timestamp.isoformat(),
            "speed": self.speed,
            "heading": self.heading,
            "altitude": self.altitude,
        }

    def in_utc(self, tz: tzinfo) -> "LocationSample":
        """Same fix with an aware UTC timestamp; a naive one is read as wall time in ``tz``."""
        return replace(self, sample_timestamp=to_utc(self.sample_timestamp, tz))

    @classmethod
    def from_dict(cls, data: dict) -> "LocationSample":
        ts = data["sample_timestamp"]
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy_meters=float(data["accuracy_meters"]),
            sample_timestamp=parse_iso_datetime(ts) if isinstance(ts, str) else ts,
            speed=data.get("speed"),
            heading=data.get("heading"),
            altitude=data.get("altitude"),
        )


@dataclass(frozen=True)
class GeofenceTarget:
    """Domain entity: a circular zone around one organization location."""

    location_id: Optional[str]
    organization_id: str
    name: str
    latitude: float
    longitude: float
    radius_meters: float
    is_active: bool = True


@dataclass(frozen=True)
class GeofencePolicy:
    max_acceptable_accuracy_meters: float = DEFAULT_MAX_ACCURACY_METERS
    require_recent_timestamp: bool = True
    max_timestamp_age_ms: int = DEFAULT_MAX_TIMESTAMP_AGE_MS
    max_plausible_speed_kmh: Optional[float] = DEFAULT_MAX_PLAUSIBLE_SPEED_KMH


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    distance_meters: float
    accuracy_meters: float
    sample_timestamp: datetime
    radius_meters: float
    flags: FrozenSet[VerificationFlag] = field(default_factory=frozenset)
    target_location_id: Optional[str] = None

    @property
    def in_range(self) -> bool:
        return VerificationFlag.OUT_OF_RANGE not in self.flags

    @property
    def blocking_flags(self) -> FrozenSet[VerificationFlag]:
        return frozenset(f for f in self.flags if f.is_blocking)

    @property
    def is_out_of_range_only(self) -> bool:
        """Rejected purely on distance; the sample itself is trustworthy."""
        return not self.in_range and not self.blocking_flags

    @property
    def location_status(self) -> LocationStatus:
        if self.blocking_flags:
            return LocationStatus.REJECTED
        if not self.in_range:
            return LocationStatus.OUT_OF_RANGE
        return LocationStatus.IN_RANGE

    def to_dict(self) -> dict:
        return {
            "verified": self.verified,
            "distance_meters": round(self.distance_meters, 1),
            "accuracy_meters": self.accuracy_meters,
            "sample_timestamp": self.sample_timestamp.isoformat(),
            "radius_meters": self.radius_meters,
            "flags": sorted(f.value for f in self.flags),
            "target_location_id": self.target_location_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationResult":
        ts = data["sample_timestamp"]
        return cls(
            verified=bool(data["verified"]),
            distance_meters=float(data["distance_meters"]),
            accuracy_meters=float(data.get("accuracy_meters") or 0),
            sample_timestamp=parse_iso_datetime(ts) if isinstance(ts, str) else ts,
            radius_meters=float(data.get("radius_meters") or 0),
            flags=frozenset(VerificationFlag(f) for f in data.get("flags") or []),
            target_location_id=data.get("target_location_id"),
        )
