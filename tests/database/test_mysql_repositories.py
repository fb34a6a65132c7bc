from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

import mysql.connector
import pytest
from mysql.connector import errorcode

from src.timeclock.timeclock.core.enums import LocationStatus, ShiftStatus
from src.timeclock.timeclock.database.mysql_base import (
    LockNotAcquired,
    db_cursor,
    from_db_datetime,
    from_json,
    named_lock,
    to_db_datetime,
)
from src.timeclock.timeclock.shifts.mysql_shift_repository import MySQLShiftRepository
from tests.fakes import make_sample, make_shift, utc


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn
        self.rowcount = conn.rowcount
        self.closed = False

    def execute(self, sql, params=None):
        self._conn.executed.append((" ".join(sql.split()), params))
        if self._conn.raise_on_execute is not None:
            raise self._conn.raise_on_execute

    def fetchone(self):
        return self._conn.rows.pop(0) if self._conn.rows else None

    def fetchall(self):
        rows, self._conn.rows = self._conn.rows, []
        return rows

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, *, rows=None, rowcount=1, raise_on_execute=None):
        self.rows = list(rows or [])
        self.rowcount = rowcount
        self.raise_on_execute = raise_on_execute
        self.executed = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=False):
        return FakeCursor(self)

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeConnectionFactory:
    lock_timeout_seconds = 7

    def __init__(self, *connections):
        self._connections = list(connections)
        self.opened = []

    def connect(self):
        conn = self._connections.pop(0) if self._connections else FakeConnection()
        self.opened.append(conn)
        return conn


def test_db_cursor_commits_and_closes():
    conn = FakeConnection()
    with db_cursor(FakeConnectionFactory(conn)) as (_, cur):
        cur.execute("SELECT 1")

    assert conn.committed is True
    assert conn.rolled_back is False
    assert conn.closed is True


def test_db_cursor_rolls_back_on_error():
    conn = FakeConnection()
    with pytest.raises(RuntimeError):
        with db_cursor(FakeConnectionFactory(conn)):
            raise RuntimeError("boom")

    assert conn.committed is False
    assert conn.rolled_back is True
    assert conn.closed is True


def test_named_lock_acquires_and_releases():
    conn = FakeConnection(rows=[(1,), (1,)])
    with named_lock(FakeConnectionFactory(conn), "timeclock:user:u1"):
        pass

    assert conn.executed == [
        ("SELECT GET_LOCK(%s, %s)", ("timeclock:user:u1", 7)),
        ("SELECT RELEASE_LOCK(%s)", ("timeclock:user:u1",)),
    ]
    assert conn.closed is True


def test_named_lock_timeout():
    conn = FakeConnection(rows=[(0,)])
    with pytest.raises(LockNotAcquired):
        with named_lock(FakeConnectionFactory(conn), "timeclock:user:u1", timeout=1):
            pytest.fail("lock body must not run")

    assert conn.executed == [("SELECT GET_LOCK(%s, %s)", ("timeclock:user:u1", 1))]
    assert conn.closed is True


def test_create_open_reports_duplicate_open_shift():
    dup = mysql.connector.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)
    conn = FakeConnection(raise_on_execute=dup)
    repo = MySQLShiftRepository(FakeConnectionFactory(conn))

    assert repo.create_open(make_shift("s1", clock_in_at=utc(2024, 1, 1, 9, 0))) is False
    assert conn.rolled_back is True


def test_create_open_propagates_other_integrity_errors():
    err = mysql.connector.IntegrityError(msg="FK", errno=errorcode.ER_NO_REFERENCED_ROW_2)
    repo = MySQLShiftRepository(FakeConnectionFactory(FakeConnection(raise_on_execute=err)))

    with pytest.raises(mysql.connector.IntegrityError):
        repo.create_open(make_shift("s1", clock_in_at=utc(2024, 1, 1, 9, 0)))


def test_create_open_stores_naive_utc_and_json_location():
    conn = FakeConnection()
    repo = MySQLShiftRepository(FakeConnectionFactory(conn))
    sample = make_sample(40.712812, -74.005921, utc(2024, 1, 1, 9, 0))
    shift = make_shift("s1", clock_in_at=utc(2024, 1, 1, 9, 0), clock_in_location=sample)

    assert repo.create_open(shift) is True

    _, params = conn.executed[0]
    assert params[0] == "s1"
    assert params[4] == "open"
    assert params[5] == datetime(2024, 1, 1, 9, 0)
    assert json.loads(params[7])["latitude"] == 40.712812


@pytest.mark.parametrize("rowcount, expected", [(1, True), (0, False)])
def test_close_is_compare_and_set(rowcount, expected):
    conn = FakeConnection(rowcount=rowcount)
    repo = MySQLShiftRepository(FakeConnectionFactory(conn))

    ok = repo.close(
        shift_id="s1",
        clock_out_at=utc(2024, 1, 1, 17, 0),
        clock_out_location=None,
        clock_out_verification=None,
        clock_out_location_status=LocationStatus.IN_RANGE,
        duration_minutes=480,
        break_minutes=30,
        net_duration_minutes=450,
    )

    sql, params = conn.executed[0]
    assert ok is expected
    assert "WHERE shift_id=%s AND status=%s" in sql
    assert params[-2:] == ("s1", "open")


def test_row_mapping():
    sample = make_sample(40.712812, -74.005921, utc(2024, 1, 1, 9, 0))
    row = {
        "shift_id": "s1",
        "user_id": "u1",
        "organization_id": "org-1",
        "location_id": "loc-hq",
        "status": "closed",
        "clock_in_at": datetime(2024, 1, 1, 9, 0),
        "shift_date": date(2024, 1, 1),
        "clock_in_location": json.dumps(sample.to_dict()),
        "clock_in_verification": None,
        "clock_in_location_status": "in_range",
        "clock_in_note": None,
        "clock_out_at": datetime(2024, 1, 1, 17, 0),
        "clock_out_location": None,
        "clock_out_verification": json.dumps(
            {
                "verified": False,
                "distance_meters": 1111.9,
                "accuracy_meters": 10,
                "sample_timestamp": "2024-01-01T17:00:00+00:00",
                "radius_meters": 100,
                "flags": ["out_of_range"],
            }
        ),
        "clock_out_location_status": "out_of_range",
        "clock_out_note": None,
        "duration_minutes": 480,
        "break_minutes": 30,
        "net_duration_minutes": 450,
        "is_revised": 0,
        "resolution_note": None,
        "revised_by": None,
        "revised_at": None,
        "marked_stale_at": None,
        "override_request_id": None,
    }
    repo = MySQLShiftRepository(FakeConnectionFactory(FakeConnection(rows=[row])))

    shift = repo.get_by_id("s1")

    assert shift.status == ShiftStatus.CLOSED
    assert shift.clock_in_at == utc(2024, 1, 1, 9, 0)
    assert shift.clock_in_location == sample
    assert shift.clock_out_location_status == LocationStatus.OUT_OF_RANGE
    assert shift.clock_out_verification.in_range is False
    assert shift.is_revised is False
    assert shift.net_duration_minutes == 450


def test_get_by_id_missing():
    repo = MySQLShiftRepository(FakeConnectionFactory(FakeConnection(rows=[])))
    assert repo.get_by_id("nope") is None


def test_datetime_helpers():
    plus_two = timezone(timedelta(hours=2))
    assert to_db_datetime(datetime(2024, 1, 1, 11, 0, tzinfo=plus_two)) == datetime(2024, 1, 1, 9, 0)
    assert to_db_datetime(None) is None
    assert from_db_datetime(datetime(2024, 1, 1, 9, 0)) == utc(2024, 1, 1, 9, 0)
    assert from_db_datetime("2024-01-01 09:00:00") == utc(2024, 1, 1, 9, 0)


@pytest.mark.parametrize("value", ['{"a": 1}', b'{"a": 1}', {"a": 1}])
def test_from_json_accepts_connector_variants(value):
    assert from_json(value) == {"a": 1}
