from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_json
from .repository import OrganizationRepository


class MySQLOrganizationRepository(OrganizationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_policy_overrides(self, organization_id: str) -> Optional[Mapping[str, Any]]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT policy_settings
                FROM organizations
                WHERE organization_id=%s
                """,
                (organization_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return from_json(r.get("policy_settings")) or {}

    def list_active_ids(self) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT organization_id
                FROM organizations
                WHERE is_active=1
                ORDER BY organization_id
                """
            )
            return [str(r["organization_id"]) for r in fetchall(cur)]
