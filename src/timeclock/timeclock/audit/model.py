from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AuditAction


@dataclass(frozen=True)
class AuditEntry:
    entry_id: str
    organization_id: str
    actor_id: Optional[str]
    action: AuditAction
    entity_type: str
    entity_id: str
    created_at: datetime
    details: dict[str, Any] = field(default_factory=dict)
