from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import RequestStatus, RequestType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    fetchall,
    fetchone,
    from_db_datetime,
    from_json,
    to_db_datetime,
    to_json,
)
from ..geofence.model import LocationSample
from .model import OutOfRangeRequest
from .repository import OutOfRangeRequestRepository

_COLUMNS = """
    request_id, user_id, organization_id, request_type, reason, distance_from_geofence,
    status, created_at, requested_at, expires_at, location, shift_id,
    reviewed_by, reviewed_at, reviewer_note
"""


def _row_to_request(r: dict) -> OutOfRangeRequest:
    location = from_json(r.get("location"))
    distance = r.get("distance_from_geofence")
    return OutOfRangeRequest(
        request_id=str(r["request_id"]),
        user_id=str(r["user_id"]),
        organization_id=str(r["organization_id"]),
        request_type=RequestType(r["request_type"]),
        reason=r["reason"],
        distance_from_geofence=float(distance) if distance is not None else None,
        status=RequestStatus(r["status"]),
        created_at=from_db_datetime(r["created_at"]),
        requested_at=from_db_datetime(r["requested_at"]),
        expires_at=from_db_datetime(r["expires_at"]),
        location=LocationSample.from_dict(location) if location else None,
        shift_id=r.get("shift_id"),
        reviewed_by=r.get("reviewed_by"),
        reviewed_at=from_db_datetime(r.get("reviewed_at")),
        reviewer_note=r.get("reviewer_note"),
    )


class MySQLOutOfRangeRequestRepository(OutOfRangeRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(self, request: OutOfRangeRequest) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO out_of_range_requests(
                    request_id, user_id, organization_id, request_type, reason, distance_from_geofence,
                    status, created_at, requested_at, expires_at, location, shift_id
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    request.request_id,
                    request.user_id,
                    request.organization_id,
                    request.request_type.value,
                    request.reason,
                    request.distance_from_geofence,
                    request.status.value,
                    to_db_datetime(request.created_at),
                    to_db_datetime(request.requested_at),
                    to_db_datetime(request.expires_at),
                    to_json(request.location.to_dict() if request.location else None),
                    request.shift_id,
                ),
            )

    def get_by_id(self, request_id: str) -> Optional[OutOfRangeRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM out_of_range_requests
                WHERE request_id=%s
                """,
                (request_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return _row_to_request(r)

    def list_for_user(self, user_id: str, *, limit: int = 50) -> Sequence[OutOfRangeRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM out_of_range_requests
                WHERE user_id=%s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (user_id, int(limit)),
            )
            return [_row_to_request(r) for r in fetchall(cur)]

    def list_pending(self, organization_id: str) -> Sequence[OutOfRangeRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM out_of_range_requests
                WHERE organization_id=%s AND status=%s
                ORDER BY created_at
                """,
                (organization_id, RequestStatus.PENDING.value),
            )
            return [_row_to_request(r) for r in fetchall(cur)]

    def list_pending_expired(self, *, now: datetime) -> Sequence[OutOfRangeRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM out_of_range_requests
                WHERE status=%s AND expires_at <= %s
                ORDER BY expires_at
                """,
                (RequestStatus.PENDING.value, to_db_datetime(now)),
            )
            return [_row_to_request(r) for r in fetchall(cur)]

    def decide(
        self,
        *,
        request_id: str,
        status: RequestStatus,
        reviewed_by: Optional[str],
        reviewed_at: datetime,
        reviewer_note: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE out_of_range_requests
                SET status=%s, reviewed_by=%s, reviewed_at=%s, reviewer_note=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    status.value,
                    reviewed_by,
                    to_db_datetime(reviewed_at),
                    reviewer_note,
                    request_id,
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount == 1
