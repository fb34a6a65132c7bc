from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import GeofenceTarget


class GeofenceTargetRepository(Protocol):
    def list_active_for_organization(self, organization_id: str) -> Sequence[GeofenceTarget]:
        raise NotImplementedError

    def get_by_id(self, location_id: str) -> Optional[GeofenceTarget]:
        raise NotImplementedError
