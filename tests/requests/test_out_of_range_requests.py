from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.timeclock.timeclock.core.enums import AuditAction, LocationStatus, RequestStatus, RequestType, ShiftStatus
from src.timeclock.timeclock.core.exceptions import (
    AlreadyClockedIn,
    AuthorizationError,
    NoOpenShift,
    ReasonTooShort,
    RequestExpired,
    RequestNotFound,
    RequestNotPending,
    ValidationError,
)
from tests.fakes import FAR_FROM_HQ, NEAR_HQ, ORG_ID, make_sample, utc

REASON = "Client meeting across town ran late"


@pytest.fixture
def requests(container):
    return container.request_service


def _submit(requests, clock, request_type="clock_in", **kwargs):
    kwargs.setdefault("reason", REASON)
    return requests.submit(user_id="u1", organization_id=ORG_ID, request_type=request_type, **kwargs)


def test_submit_clock_in_request(requests, clock, requests_repo, audit_repo):
    req = _submit(requests, clock, distance_from_geofence=250)

    assert req.status == RequestStatus.PENDING
    assert req.request_type == RequestType.CLOCK_IN
    assert req.requested_at == clock.now
    assert req.expires_at == clock.now + timedelta(hours=24)
    assert req.distance_from_geofence == 250
    assert req.shift_id is None
    assert requests_repo.get_by_id(req.request_id) == req
    assert requests.list_pending(ORG_ID) == [req]
    assert requests.list_for_user("u1") == [req]
    assert audit_repo.actions() == [AuditAction.REQUEST_SUBMITTED]


@pytest.mark.parametrize("reason", ["", "   ", "too short", "  123456789  "])
def test_reason_must_be_detailed(requests, clock, reason):
    with pytest.raises(ReasonTooShort) as exc_info:
        _submit(requests, clock, reason=reason)
    assert exc_info.value.details["min_length"] == 10


def test_reason_length_from_policy(requests, clock, organizations_repo):
    organizations_repo.overrides[ORG_ID] = {"out_of_range_reason_min_length": 3}
    assert _submit(requests, clock, reason="bus").reason == "bus"


def test_distance_recomputed_from_attached_sample(requests, clock):
    req = _submit(requests, clock, distance_from_geofence=5, sample=make_sample(*FAR_FROM_HQ, clock.now))

    assert req.distance_from_geofence == pytest.approx(1112, abs=5)
    assert req.location.latitude == FAR_FROM_HQ[0]


def test_attached_naive_sample_is_read_in_organization_time(requests, clock, organizations_repo):
    organizations_repo.overrides[ORG_ID] = {"timezone": "America/New_York"}
    # clock is 09:00 UTC, 04:00 in New York
    req = _submit(requests, clock, sample=make_sample(*FAR_FROM_HQ, datetime(2024, 1, 1, 4, 0)))

    assert req.location.sample_timestamp == utc(2024, 1, 1, 9, 0)


def test_negative_claimed_distance(requests, clock):
    with pytest.raises(ValidationError):
        _submit(requests, clock, distance_from_geofence=-3)


def test_strict_mode_disables_requests(requests, clock, organizations_repo):
    organizations_repo.overrides[ORG_ID] = {"strict_mode": True}
    with pytest.raises(ValidationError):
        _submit(requests, clock)


def test_unknown_request_type(requests, clock):
    with pytest.raises(ValidationError):
        _submit(requests, clock, request_type="lunch")


def test_requested_time_cannot_be_in_future(requests, clock):
    with pytest.raises(ValidationError):
        _submit(requests, clock, requested_at=clock.now + timedelta(minutes=5))


def test_clock_out_request_needs_open_shift(requests, clock):
    with pytest.raises(NoOpenShift):
        _submit(requests, clock, "clock_out")


def test_clock_in_request_refused_while_shift_open(requests, ledger, clock):
    ledger.clock_in(user_id="u1", organization_id=ORG_ID, sample=make_sample(*NEAR_HQ, clock.now))
    with pytest.raises(AlreadyClockedIn):
        _submit(requests, clock)


def test_approve_clock_in_request(requests, ledger, clock, audit_repo):
    req = _submit(
        requests,
        clock,
        sample=make_sample(*FAR_FROM_HQ, clock.now),
        requested_at=clock.now - timedelta(minutes=5),
    )
    clock.advance(minutes=30)

    shift = requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_manager", note="ok")

    assert shift.status == ShiftStatus.OPEN
    assert shift.clock_in_at == req.requested_at
    assert shift.clock_in_location_status == LocationStatus.OUT_OF_RANGE
    assert shift.override_request_id == req.request_id
    assert shift.clock_in_note == REASON
    assert shift.location_id == "loc-hq"
    assert ledger.current_shift("u1").shift_id == shift.shift_id

    stored = requests.list_for_user("u1")[0]
    assert stored.status == RequestStatus.APPROVED
    assert stored.reviewed_by == "m1"
    assert stored.reviewer_note == "ok"
    assert requests.list_pending(ORG_ID) == []
    assert audit_repo.actions() == [
        AuditAction.REQUEST_SUBMITTED,
        AuditAction.CLOCK_IN,
        AuditAction.REQUEST_APPROVED,
    ]


def test_approve_clock_out_request(requests, ledger, clock, shifts_repo):
    opened = ledger.clock_in(user_id="u1", organization_id=ORG_ID, sample=make_sample(*NEAR_HQ, clock.now))
    clock.advance(hours=8)
    req = _submit(requests, clock, "clock_out", sample=make_sample(*FAR_FROM_HQ, clock.now))
    assert req.shift_id == opened.shift_id

    clock.advance(hours=1)
    shift = requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_admin")

    assert shift.shift_id == opened.shift_id
    assert shift.status == ShiftStatus.CLOSED
    assert shift.clock_out_at == req.requested_at
    assert shift.duration_minutes == 480
    assert shift.break_minutes == 30
    assert shift.net_duration_minutes == 450
    assert shift.clock_out_location_status == LocationStatus.OUT_OF_RANGE
    assert shifts_repo.get_by_id(opened.shift_id).override_request_id == req.request_id


def test_clock_out_approval_after_shift_was_closed(requests, ledger, clock):
    ledger.clock_in(user_id="u1", organization_id=ORG_ID, sample=make_sample(*NEAR_HQ, clock.now))
    clock.advance(hours=8)
    req = _submit(requests, clock, "clock_out")
    ledger.clock_out(user_id="u1", sample=make_sample(*NEAR_HQ, clock.now))

    with pytest.raises(NoOpenShift):
        requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_manager")

    assert requests.list_pending(ORG_ID)[0].request_id == req.request_id


def test_clock_in_approval_when_already_clocked_in(requests, ledger, clock):
    req = _submit(requests, clock)
    ledger.clock_in(user_id="u1", organization_id=ORG_ID, sample=make_sample(*NEAR_HQ, clock.now))

    with pytest.raises(AlreadyClockedIn):
        requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_manager")


def test_employee_cannot_decide(requests, clock):
    req = _submit(requests, clock)
    with pytest.raises(AuthorizationError):
        requests.approve(req.request_id, reviewer_id="u2", reviewer_role="employee")
    with pytest.raises(AuthorizationError):
        requests.deny(req.request_id, reviewer_id="u2", reviewer_role="employee")


def test_request_is_decided_once(requests, clock):
    req = _submit(requests, clock)
    requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_manager")

    with pytest.raises(RequestNotPending):
        requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_manager")
    with pytest.raises(RequestNotPending):
        requests.deny(req.request_id, reviewer_id="m1", reviewer_role="org_manager")


def test_deny(requests, clock, shifts_repo, audit_repo):
    req = _submit(requests, clock)
    denied = requests.deny(req.request_id, reviewer_id="m1", reviewer_role="org_manager", note="Not on schedule")

    assert denied.status == RequestStatus.DENIED
    assert denied.reviewer_note == "Not on schedule"
    assert shifts_repo.all() == []
    assert audit_repo.actions()[-1] == AuditAction.REQUEST_DENIED


def test_expired_request_cannot_be_approved(requests, clock, requests_repo):
    req = _submit(requests, clock)
    clock.advance(hours=24)

    with pytest.raises(RequestExpired):
        requests.approve(req.request_id, reviewer_id="m1", reviewer_role="org_manager")

    assert requests_repo.get_by_id(req.request_id).status == RequestStatus.EXPIRED


def test_expire_overdue(requests, clock, organizations_repo):
    organizations_repo.overrides[ORG_ID] = {"request_ttl_hours": 2}
    old = _submit(requests, clock)
    clock.advance(hours=1, minutes=30)
    recent = requests.submit(user_id="u2", organization_id=ORG_ID, request_type="clock_in", reason=REASON)
    clock.advance(hours=1)

    expired = requests.expire_overdue()

    assert [r.request_id for r in expired] == [old.request_id]
    assert expired[0].status == RequestStatus.EXPIRED
    assert [r.request_id for r in requests.list_pending(ORG_ID)] == [recent.request_id]


def test_unknown_or_foreign_request(requests, clock):
    req = _submit(requests, clock)

    with pytest.raises(RequestNotFound):
        requests.approve("missing", reviewer_id="m1", reviewer_role="org_manager")
    with pytest.raises(RequestNotFound):
        requests.deny(req.request_id, reviewer_id="m1", reviewer_role="org_manager", organization_id="org-ny")
