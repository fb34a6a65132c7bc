from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AuditAction
from .model import AuditEntry
from .repository import AuditRepository


class AuditTrail:
    """Append-only record of who changed which shift or request, and how."""

    def __init__(self, audit: AuditRepository):
        self._audit = audit

    def record(
        self,
        action: AuditAction,
        *,
        organization_id: str,
        entity_type: str,
        entity_id: str,
        at: datetime,
        actor_id: Optional[str] = None,
        **details: Any,
    ) -> AuditEntry:
        entry = AuditEntry(
            entry_id=str(uuid.uuid4()),
            organization_id=organization_id,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            created_at=at,
            details=details,
        )
        self._audit.add(entry)
        return entry

    def history(self, *, entity_type: str, entity_id: str):
        return self._audit.list_for_entity(entity_type=entity_type, entity_id=entity_id)
