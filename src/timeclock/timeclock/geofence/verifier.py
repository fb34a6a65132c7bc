from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.validators import require_range
from ..core.enums import VerificationFlag
from ..core.exceptions import GeofenceNotConfigured, InvalidLocation, ValidationError
from .checks.base import CheckContext
from .distance import haversine_distance
from .factory import LocationCheckFactory
from .model import GeofencePolicy, GeofenceTarget, LocationSample, VerificationResult


class GeofenceVerifier:
    """Authoritative server-side location verification.

    The distance is always recomputed from coordinates; anything the client
    claims about its own distance is ignored. ``verify`` is a pure function of
    its inputs plus ``now``.
    """

    def __init__(
        self,
        *,
        factory: LocationCheckFactory | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._factory = factory or LocationCheckFactory()
        self._clock = clock

    @staticmethod
    def validate_sample(sample: LocationSample) -> None:
        try:
            require_range(sample.latitude, "latitude", minimum=-90, maximum=90)
            require_range(sample.longitude, "longitude", minimum=-180, maximum=180)
            require_range(sample.accuracy_meters, "accuracy", minimum=0)
        except ValidationError as exc:
            raise InvalidLocation(str(exc)) from exc

    def verify(
        self,
        sample: LocationSample,
        target: GeofenceTarget,
        policy: GeofencePolicy,
        *,
        previous: Optional[LocationSample] = None,
        now: Optional[datetime] = None,
    ) -> VerificationResult:
        self.validate_sample(sample)
        now = now or self._clock()

        distance = haversine_distance(sample.latitude, sample.longitude, target.latitude, target.longitude)
        ctx = CheckContext(
            sample=sample,
            target=target,
            policy=policy,
            distance_meters=distance,
            now=now,
            previous=previous,
        )

        flags: set[VerificationFlag] = set()
        for check in self._factory.for_policy(policy):
            flag = check.evaluate(ctx)
            if flag is not None:
                flags.add(flag)

        in_range = distance <= target.radius_meters
        if not in_range:
            flags.add(VerificationFlag.OUT_OF_RANGE)

        verified = in_range and not any(f.is_blocking for f in flags)
        return VerificationResult(
            verified=verified,
            distance_meters=distance,
            accuracy_meters=sample.accuracy_meters,
            sample_timestamp=sample.sample_timestamp,
            radius_meters=target.radius_meters,
            flags=frozenset(flags),
            target_location_id=target.location_id,
        )

    def nearest_target(self, sample: LocationSample, targets: Sequence[GeofenceTarget]) -> GeofenceTarget:
        active = [t for t in targets if t.is_active]
        if not active:
            raise GeofenceNotConfigured()
        return min(
            active,
            key=lambda t: haversine_distance(sample.latitude, sample.longitude, t.latitude, t.longitude),
        )

    def verify_nearest(
        self,
        sample: LocationSample,
        targets: Sequence[GeofenceTarget],
        policy: GeofencePolicy,
        *,
        previous: Optional[LocationSample] = None,
        now: Optional[datetime] = None,
    ) -> VerificationResult:
        """Verify against the closest active location of an organization."""
        self.validate_sample(sample)
        target = self.nearest_target(sample, targets)
        return self.verify(sample, target, policy, previous=previous, now=now)
