from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import LocationStatus, ShiftStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    fetchall,
    fetchone,
    from_db_datetime,
    from_json,
    is_duplicate_key,
    named_lock,
    to_db_datetime,
    to_json,
)
from ..geofence.model import LocationSample, VerificationResult
from .model import Shift
from .repository import ShiftRepository

_COLUMNS = """
    shift_id, user_id, organization_id, location_id, status,
    clock_in_at, shift_date, clock_in_location, clock_in_verification, clock_in_location_status, clock_in_note,
    clock_out_at, clock_out_location, clock_out_verification, clock_out_location_status, clock_out_note,
    duration_minutes, break_minutes, net_duration_minutes,
    is_revised, resolution_note, revised_by, revised_at, marked_stale_at, override_request_id
"""


def _verification(value) -> Optional[VerificationResult]:
    data = from_json(value)
    return VerificationResult.from_dict(data) if data else None


def _sample(value) -> Optional[LocationSample]:
    data = from_json(value)
    return LocationSample.from_dict(data) if data else None


def _optional_int(value) -> Optional[int]:
    return int(value) if value is not None else None


def _row_to_shift(r: dict) -> Shift:
    out_status = r.get("clock_out_location_status")
    return Shift(
        shift_id=str(r["shift_id"]),
        user_id=str(r["user_id"]),
        organization_id=str(r["organization_id"]),
        location_id=r.get("location_id"),
        status=ShiftStatus(r["status"]),
        clock_in_at=from_db_datetime(r["clock_in_at"]),
        shift_date=r["shift_date"],
        clock_in_location=_sample(r.get("clock_in_location")),
        clock_in_verification=_verification(r.get("clock_in_verification")),
        clock_in_location_status=LocationStatus(r.get("clock_in_location_status") or LocationStatus.UNKNOWN.value),
        clock_in_note=r.get("clock_in_note"),
        clock_out_at=from_db_datetime(r.get("clock_out_at")),
        clock_out_location=_sample(r.get("clock_out_location")),
        clock_out_verification=_verification(r.get("clock_out_verification")),
        clock_out_location_status=LocationStatus(out_status) if out_status else None,
        clock_out_note=r.get("clock_out_note"),
        duration_minutes=_optional_int(r.get("duration_minutes")),
        break_minutes=_optional_int(r.get("break_minutes")),
        net_duration_minutes=_optional_int(r.get("net_duration_minutes")),
        is_revised=bool(r.get("is_revised")),
        resolution_note=r.get("resolution_note"),
        revised_by=r.get("revised_by"),
        revised_at=from_db_datetime(r.get("revised_at")),
        marked_stale_at=from_db_datetime(r.get("marked_stale_at")),
        override_request_id=r.get("override_request_id"),
    )


class MySQLShiftRepository(ShiftRepository):
    """Shift storage.

    At most one open shift per user is enforced by the ``uq_shifts_open_user``
    unique index on the generated ``open_user_id`` column; state changes are
    compare-and-set updates guarded by ``status='open'``.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def lock_user(self, user_id: str):
        return named_lock(self._conn_factory, f"timeclock:user:{user_id}")

    def lock_shift(self, shift_id: str):
        return named_lock(self._conn_factory, f"timeclock:shift:{shift_id}")

    def list_open_for_user(self, user_id: str) -> Sequence[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM shifts
                WHERE user_id=%s AND status=%s
                ORDER BY clock_in_at DESC
                """,
                (user_id, ShiftStatus.OPEN.value),
            )
            return [_row_to_shift(r) for r in fetchall(cur)]

    def get_by_id(self, shift_id: str) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM shifts
                WHERE shift_id=%s
                """,
                (shift_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return _row_to_shift(r)

    def create_open(self, shift: Shift) -> bool:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO shifts(
                        shift_id, user_id, organization_id, location_id, status,
                        clock_in_at, shift_date, clock_in_location, clock_in_verification,
                        clock_in_location_status, clock_in_note, override_request_id
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        shift.shift_id,
                        shift.user_id,
                        shift.organization_id,
                        shift.location_id,
                        ShiftStatus.OPEN.value,
                        to_db_datetime(shift.clock_in_at),
                        shift.shift_date,
                        to_json(shift.clock_in_location.to_dict() if shift.clock_in_location else None),
                        to_json(shift.clock_in_verification.to_dict() if shift.clock_in_verification else None),
                        shift.clock_in_location_status.value,
                        shift.clock_in_note,
                        shift.override_request_id,
                    ),
                )
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                return False
            raise
        return True

    def close(
        self,
        *,
        shift_id: str,
        clock_out_at: datetime,
        clock_out_location: Optional[LocationSample],
        clock_out_verification: Optional[VerificationResult],
        clock_out_location_status: LocationStatus,
        duration_minutes: int,
        break_minutes: int,
        net_duration_minutes: int,
        note: Optional[str] = None,
        override_request_id: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE shifts
                SET status=%s, clock_out_at=%s, clock_out_location=%s, clock_out_verification=%s,
                    clock_out_location_status=%s, clock_out_note=%s, duration_minutes=%s,
                    break_minutes=%s, net_duration_minutes=%s,
                    override_request_id=COALESCE(%s, override_request_id)
                WHERE shift_id=%s AND status=%s
                """,
                (
                    ShiftStatus.CLOSED.value,
                    to_db_datetime(clock_out_at),
                    to_json(clock_out_location.to_dict() if clock_out_location else None),
                    to_json(clock_out_verification.to_dict() if clock_out_verification else None),
                    clock_out_location_status.value,
                    note,
                    int(duration_minutes),
                    int(break_minutes),
                    int(net_duration_minutes),
                    override_request_id,
                    shift_id,
                    ShiftStatus.OPEN.value,
                ),
            )
            return cur.rowcount == 1

    def revise(
        self,
        *,
        shift_id: str,
        clock_out_at: datetime,
        duration_minutes: int,
        break_minutes: int,
        net_duration_minutes: int,
        resolution_note: str,
        revised_by: str,
        revised_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE shifts
                SET status=%s, clock_out_at=%s, duration_minutes=%s, break_minutes=%s,
                    net_duration_minutes=%s, is_revised=1, resolution_note=%s,
                    revised_by=%s, revised_at=%s, marked_stale_at=COALESCE(marked_stale_at, %s)
                WHERE shift_id=%s AND status IN (%s, %s)
                """,
                (
                    ShiftStatus.REVISED.value,
                    to_db_datetime(clock_out_at),
                    int(duration_minutes),
                    int(break_minutes),
                    int(net_duration_minutes),
                    resolution_note,
                    revised_by,
                    to_db_datetime(revised_at),
                    to_db_datetime(revised_at),
                    shift_id,
                    ShiftStatus.OPEN.value,
                    ShiftStatus.STALE.value,
                ),
            )
            return cur.rowcount == 1

    def list_open_started_before(self, *, organization_id: str, cutoff: datetime) -> Sequence[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM shifts
                WHERE organization_id=%s AND status=%s AND clock_in_at < %s
                ORDER BY clock_in_at
                """,
                (organization_id, ShiftStatus.OPEN.value, to_db_datetime(cutoff)),
            )
            return [_row_to_shift(r) for r in fetchall(cur)]

    def list_recent_for_user(self, user_id: str, limit: int) -> Sequence[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM shifts
                WHERE user_id=%s
                ORDER BY clock_in_at DESC
                LIMIT %s
                """,
                (user_id, int(limit)),
            )
            return [_row_to_shift(r) for r in fetchall(cur)]

    def list_for_report(
        self,
        *,
        organization_id: str,
        start_date: date,
        end_date: date,
        user_id: Optional[str] = None,
    ) -> Sequence[Shift]:
        clauses = ["organization_id=%s", "shift_date BETWEEN %s AND %s", "status IN (%s, %s)"]
        params: list[object] = [
            organization_id,
            start_date,
            end_date,
            ShiftStatus.CLOSED.value,
            ShiftStatus.REVISED.value,
        ]
        if user_id is not None:
            clauses.append("user_id=%s")
            params.append(user_id)

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM shifts
                WHERE {where}
                ORDER BY shift_date, user_id, clock_in_at
                """,
                tuple(params),
            )
            return [_row_to_shift(r) for r in fetchall(cur)]
