from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence


class OrganizationRepository(Protocol):
    def get_policy_overrides(self, organization_id: str) -> Optional[Mapping[str, Any]]:
        """Stored overrides for one organization; None when the organization is unknown."""

        raise NotImplementedError

    def list_active_ids(self) -> Sequence[str]:
        raise NotImplementedError
