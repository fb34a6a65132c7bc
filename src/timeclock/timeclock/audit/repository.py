from __future__ import annotations

from typing import Protocol, Sequence

from .model import AuditEntry


class AuditRepository(Protocol):
    def add(self, entry: AuditEntry) -> None:
        raise NotImplementedError

    def list_for_entity(self, *, entity_type: str, entity_id: str) -> Sequence[AuditEntry]:
        raise NotImplementedError
