from __future__ import annotations

import pytest

from src.timeclock.timeclock.container import wire
from tests.fakes import (
    HQ,
    NY_OFFICE,
    NY_ORG_ID,
    ORG_ID,
    WAREHOUSE,
    FrozenClock,
    InMemoryAuditRepository,
    InMemoryGeofenceRepository,
    InMemoryOrganizationRepository,
    InMemoryRequestRepository,
    InMemoryShiftRepository,
    utc,
)


@pytest.fixture
def clock():
    return FrozenClock(utc(2024, 1, 1, 9, 0))


@pytest.fixture
def shifts_repo():
    return InMemoryShiftRepository()


@pytest.fixture
def geofences_repo():
    return InMemoryGeofenceRepository([HQ, WAREHOUSE, NY_OFFICE])


@pytest.fixture
def organizations_repo():
    return InMemoryOrganizationRepository(
        {
            ORG_ID: {},
            NY_ORG_ID: {"timezone": "America/New_York"},
        }
    )


@pytest.fixture
def requests_repo():
    return InMemoryRequestRepository()


@pytest.fixture
def audit_repo():
    return InMemoryAuditRepository()


@pytest.fixture
def container(shifts_repo, geofences_repo, organizations_repo, requests_repo, audit_repo, clock):
    return wire(
        shifts_repo=shifts_repo,
        geofences_repo=geofences_repo,
        organizations_repo=organizations_repo,
        requests_repo=requests_repo,
        audit_repo=audit_repo,
        clock=clock,
    )


@pytest.fixture
def ledger(container):
    return container.shift_ledger
