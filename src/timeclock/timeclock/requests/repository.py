from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import RequestStatus
from .model import OutOfRangeRequest


class OutOfRangeRequestRepository(Protocol):
    def add(self, request: OutOfRangeRequest) -> None:
        raise NotImplementedError

    def get_by_id(self, request_id: str) -> Optional[OutOfRangeRequest]:
        raise NotImplementedError

    def list_for_user(self, user_id: str, *, limit: int = 50) -> Sequence[OutOfRangeRequest]:
        """Newest first."""

        raise NotImplementedError

    def list_pending(self, organization_id: str) -> Sequence[OutOfRangeRequest]:
        """Oldest first."""

        raise NotImplementedError

    def list_pending_expired(self, *, now: datetime) -> Sequence[OutOfRangeRequest]:
        raise NotImplementedError

    def decide(
        self,
        *,
        request_id: str,
        status: RequestStatus,
        reviewed_by: Optional[str],
        reviewed_at: datetime,
        reviewer_note: Optional[str] = None,
    ) -> bool:
        """pending -> status, compare-and-set. False if already processed."""

        raise NotImplementedError
