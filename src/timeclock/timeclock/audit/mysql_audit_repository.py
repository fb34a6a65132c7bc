from __future__ import annotations

from typing import Sequence

from ..core.enums import AuditAction
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, from_db_datetime, from_json, to_db_datetime, to_json
from .model import AuditEntry
from .repository import AuditRepository


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(self, entry: AuditEntry) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_log(entry_id, organization_id, actor_id, action, entity_type, entity_id, details, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entry.entry_id,
                    entry.organization_id,
                    entry.actor_id,
                    entry.action.value,
                    entry.entity_type,
                    entry.entity_id,
                    to_json(entry.details),
                    to_db_datetime(entry.created_at),
                ),
            )

    def list_for_entity(self, *, entity_type: str, entity_id: str) -> Sequence[AuditEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT entry_id, organization_id, actor_id, action, entity_type, entity_id, details, created_at
                FROM audit_log
                WHERE entity_type=%s AND entity_id=%s
                ORDER BY created_at
                """,
                (entity_type, entity_id),
            )
            return [
                AuditEntry(
                    entry_id=r["entry_id"],
                    organization_id=r["organization_id"],
                    actor_id=r.get("actor_id"),
                    action=AuditAction(r["action"]),
                    entity_type=r["entity_type"],
                    entity_id=r["entity_id"],
                    created_at=from_db_datetime(r["created_at"]),
                    details=from_json(r.get("details")) or {},
                )
                for r in fetchall(cur)
            ]
