from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

import pytest

from src.timeclock.timeclock.core.enums import AuditAction, LocationStatus, ShiftStatus, VerificationFlag
from src.timeclock.timeclock.core.exceptions import (
    AlreadyClockedIn,
    GeofenceNotConfigured,
    IntegrityViolation,
    LocationRejected,
    NoOpenShift,
    OutOfRange,
    ValidationError,
)
from tests.fakes import FAR_FROM_HQ, NEAR_HQ, NY_ORG_ID, ORG_ID, make_sample, make_shift, utc

NEAR_NY_OFFICE = (40.678201, -73.944102)


def _clock_in(ledger, clock, coords=NEAR_HQ, *, user_id="u1", organization_id=ORG_ID, **kwargs):
    return ledger.clock_in(
        user_id=user_id,
        organization_id=organization_id,
        sample=make_sample(*coords, clock.now, **kwargs),
    )


def _clock_out(ledger, clock, coords=NEAR_HQ, *, user_id="u1", **kwargs):
    return ledger.clock_out(user_id=user_id, sample=make_sample(*coords, clock.now, **kwargs))


def test_clock_in_then_out(ledger, clock, shifts_repo, audit_repo):
    shift = _clock_in(ledger, clock)

    assert shift.status == ShiftStatus.OPEN
    assert shift.clock_in_at == clock.now
    assert shift.location_id == "loc-hq"
    assert shift.shift_date == date(2024, 1, 1)
    assert shift.clock_in_location_status == LocationStatus.IN_RANGE
    assert shift.clock_in_verification.verified is True
    assert ledger.current_shift("u1") == shift

    clock.advance(hours=8)
    result = _clock_out(ledger, clock)

    assert result.shift.status == ShiftStatus.CLOSED
    assert result.duration.total_minutes == 480
    assert result.break_minutes == 30
    assert result.net_minutes == 450
    assert result.shift.clock_out_location_status == LocationStatus.IN_RANGE
    assert ledger.current_shift("u1") is None
    assert shifts_repo.get_by_id(shift.shift_id).net_duration_minutes == 450
    assert audit_repo.actions() == [AuditAction.CLOCK_IN, AuditAction.CLOCK_OUT]


def test_clock_out_payload(ledger, clock):
    _clock_in(ledger, clock)
    clock.advance(hours=2, minutes=15)
    payload = _clock_out(ledger, clock).to_dict()

    assert payload["success"] is True
    assert payload["duration"]["total"] == "2h 15m"
    assert payload["duration"]["break_minutes"] == 0
    assert payload["shift"]["status"] == "closed"


def test_second_clock_in_is_refused(ledger, clock, shifts_repo):
    first = _clock_in(ledger, clock)
    clock.advance(minutes=5)

    with pytest.raises(AlreadyClockedIn) as exc_info:
        _clock_in(ledger, clock)

    assert exc_info.value.details["shift_id"] == first.shift_id
    assert len(shifts_repo.all()) == 1


def test_clock_out_without_open_shift(ledger, clock):
    with pytest.raises(NoOpenShift):
        _clock_out(ledger, clock)


def test_clock_in_out_of_range_requires_request(ledger, clock, shifts_repo):
    with pytest.raises(OutOfRange) as exc_info:
        _clock_in(ledger, clock, FAR_FROM_HQ)

    err = exc_info.value
    assert err.code == "out_of_range"
    assert err.details["requires_request"] is True
    assert err.details["location_id"] == "loc-hq"
    assert err.details["distance_meters"] > 1000
    assert "1.1km from Head Office" in str(err)
    assert shifts_repo.all() == []


def test_clock_in_with_blocking_flag_is_rejected(ledger, clock, shifts_repo):
    with pytest.raises(LocationRejected) as exc_info:
        _clock_in(ledger, clock, accuracy=250)

    err = exc_info.value
    assert not isinstance(err, OutOfRange)
    assert err.details["flags"] == [VerificationFlag.ACCURACY_TOO_LOW.value]
    assert shifts_repo.all() == []


def test_night_shift_crosses_midnight(ledger, clock):
    clock.now = utc(2024, 1, 1, 20, 0)
    shift = _clock_in(ledger, clock)
    clock.now = utc(2024, 1, 2, 4, 30)
    result = _clock_out(ledger, clock)

    assert shift.shift_date == date(2024, 1, 1)
    assert result.duration.total_minutes == 510
    assert result.duration.crossed_midnight is True
    assert result.duration.attributed_date == date(2024, 1, 1)
    assert result.duration.formatted == "8h 30m"
    assert result.break_minutes == 30
    assert result.net_minutes == 480


def test_clock_out_out_of_range_is_recorded(ledger, clock):
    _clock_in(ledger, clock)
    clock.advance(hours=4)
    result = _clock_out(ledger, clock, FAR_FROM_HQ)

    assert result.shift.status == ShiftStatus.CLOSED
    assert result.shift.clock_out_location_status == LocationStatus.OUT_OF_RANGE
    assert VerificationFlag.OUT_OF_RANGE in result.shift.clock_out_verification.flags


def test_clock_out_with_blocking_flag_keeps_shift_open(ledger, clock):
    shift = _clock_in(ledger, clock)
    clock.advance(hours=4)

    with pytest.raises(LocationRejected):
        _clock_out(ledger, clock, accuracy=500)

    assert ledger.current_shift("u1").shift_id == shift.shift_id


def test_explicit_location_must_belong_to_organization(ledger, clock):
    with pytest.raises(ValidationError):
        ledger.clock_in(
            user_id="u1",
            organization_id=ORG_ID,
            sample=make_sample(*NEAR_NY_OFFICE, clock.now),
            location_id="loc-ny",
        )


def test_unknown_location_id(ledger, clock):
    with pytest.raises(ValidationError):
        ledger.clock_in(
            user_id="u1",
            organization_id=ORG_ID,
            sample=make_sample(*NEAR_HQ, clock.now),
            location_id="loc-missing",
        )


def test_explicit_location_is_verified_against(ledger, clock):
    with pytest.raises(OutOfRange) as exc_info:
        ledger.clock_in(
            user_id="u1",
            organization_id=ORG_ID,
            sample=make_sample(*NEAR_HQ, clock.now),
            location_id="loc-wh",
        )
    assert exc_info.value.details["location_id"] == "loc-wh"


def test_multiple_open_shifts_raise_integrity_violation(ledger, clock, shifts_repo):
    shifts_repo.add(make_shift("s1", clock_in_at=utc(2023, 12, 31, 9, 0)))
    shifts_repo.add(make_shift("s2", clock_in_at=utc(2023, 12, 31, 10, 0)))

    with pytest.raises(IntegrityViolation) as exc_info:
        _clock_in(ledger, clock)
    assert sorted(exc_info.value.details["shift_ids"]) == ["s1", "s2"]

    with pytest.raises(IntegrityViolation):
        _clock_out(ledger, clock)


def test_organization_without_locations(ledger, clock, organizations_repo):
    organizations_repo.overrides["org-empty"] = {}

    with pytest.raises(GeofenceNotConfigured):
        _clock_in(ledger, clock, organization_id="org-empty")


def test_unknown_organization(ledger, clock):
    with pytest.raises(ValidationError):
        _clock_in(ledger, clock, organization_id="org-missing")


def test_lost_close_race_raises_no_open_shift(ledger, clock, shifts_repo, monkeypatch):
    _clock_in(ledger, clock)
    clock.advance(hours=1)
    monkeypatch.setattr(shifts_repo, "close", lambda **kwargs: False)

    with pytest.raises(NoOpenShift):
        _clock_out(ledger, clock)


def test_shift_no_longer_open_is_not_closed(ledger, clock, shifts_repo, monkeypatch):
    shift = _clock_in(ledger, clock)
    clock.advance(hours=1)
    stale = replace(shift, status=ShiftStatus.STALE)
    monkeypatch.setattr(shifts_repo, "list_open_for_user", lambda user_id: [stale])
    monkeypatch.setattr(shifts_repo, "close", lambda **kwargs: pytest.fail("close must not be attempted"))

    with pytest.raises(NoOpenShift):
        _clock_out(ledger, clock)


def test_shift_date_follows_organization_timezone(ledger, clock):
    # 22:00 on Jan 1 in New York
    clock.now = utc(2024, 1, 2, 3, 0)
    shift = _clock_in(ledger, clock, NEAR_NY_OFFICE, organization_id=NY_ORG_ID)

    assert shift.location_id == "loc-ny"
    assert shift.shift_date == date(2024, 1, 1)


def test_bad_stored_setting_keeps_organization_timezone(ledger, clock, organizations_repo):
    organizations_repo.overrides[NY_ORG_ID] = {"timezone": "America/New_York", "break_minutes": -5}
    clock.now = utc(2024, 1, 2, 3, 0)
    shift = _clock_in(ledger, clock, NEAR_NY_OFFICE, organization_id=NY_ORG_ID)

    assert shift.shift_date == date(2024, 1, 1)

    clock.advance(hours=7)
    assert _clock_out(ledger, clock, NEAR_NY_OFFICE).break_minutes == 30


def test_naive_sample_time_is_organization_local(ledger, clock):
    # 09:00 wall time in New York is 14:00 UTC
    clock.now = utc(2024, 1, 1, 14, 0)
    shift = ledger.clock_in(
        user_id="u1",
        organization_id=NY_ORG_ID,
        sample=make_sample(*NEAR_NY_OFFICE, datetime(2024, 1, 1, 9, 0)),
    )

    assert shift.clock_in_location.sample_timestamp == utc(2024, 1, 1, 14, 0)
    assert shift.clock_in_verification.verified is True

    clock.advance(hours=8)
    result = ledger.clock_out(user_id="u1", sample=make_sample(*NEAR_NY_OFFICE, datetime(2024, 1, 1, 17, 0)))

    assert result.shift.clock_out_location.sample_timestamp == utc(2024, 1, 1, 22, 0)
    assert result.shift.clock_out_location_status == LocationStatus.IN_RANGE


def test_naive_sample_hours_old_in_organization_time_is_stale(ledger, clock, organizations_repo, shifts_repo):
    organizations_repo.overrides[ORG_ID] = {"timezone": "Asia/Tokyo"}
    # 01:00 in Tokyo is 16:00 UTC the day before, eight hours ago
    clock.now = utc(2024, 1, 1, 0, 0)

    with pytest.raises(LocationRejected) as exc_info:
        ledger.clock_in(
            user_id="u1",
            organization_id=ORG_ID,
            sample=make_sample(*NEAR_HQ, datetime(2024, 1, 1, 1, 0)),
        )

    assert exc_info.value.details["flags"] == [VerificationFlag.TIMESTAMP_STALE.value]
    assert shifts_repo.all() == []


def test_history_is_newest_first(ledger, clock):
    for _ in range(3):
        _clock_in(ledger, clock)
        clock.advance(hours=1)
        _clock_out(ledger, clock)
        clock.advance(hours=1)

    history = ledger.history("u1")
    assert [s.clock_in_at for s in history] == sorted((s.clock_in_at for s in history), reverse=True)
    assert len(ledger.history("u1", limit=2)) == 2
    assert ledger.history("someone-else") == []


def test_users_are_independent(ledger, clock):
    _clock_in(ledger, clock, user_id="u1")
    _clock_in(ledger, clock, user_id="u2")

    assert ledger.current_shift("u1").user_id == "u1"
    assert ledger.current_shift("u2").user_id == "u2"
