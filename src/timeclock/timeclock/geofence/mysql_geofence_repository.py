from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import GeofenceTarget
from .repository import GeofenceTargetRepository

_COLUMNS = "location_id, organization_id, name, latitude, longitude, radius_meters, is_active"


def _row_to_target(r: dict) -> GeofenceTarget:
    return GeofenceTarget(
        location_id=str(r["location_id"]),
        organization_id=str(r["organization_id"]),
        name=r["name"],
        latitude=float(r["latitude"]),
        longitude=float(r["longitude"]),
        radius_meters=float(r["radius_meters"]),
        is_active=bool(r.get("is_active", 1)),
    )


class MySQLGeofenceTargetRepository(GeofenceTargetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_active_for_organization(self, organization_id: str) -> Sequence[GeofenceTarget]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM org_locations
                WHERE organization_id=%s AND is_active=1
                ORDER BY is_primary DESC, name
                """,
                (organization_id,),
            )
            return [_row_to_target(r) for r in fetchall(cur)]

    def get_by_id(self, location_id: str) -> Optional[GeofenceTarget]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM org_locations
                WHERE location_id=%s
                """,
                (location_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return _row_to_target(r)
