from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.repository import AuditRepository
from .audit.service import AuditTrail
from .core.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .geofence.factory import LocationCheckFactory
from .geofence.mysql_geofence_repository import MySQLGeofenceTargetRepository
from .geofence.repository import GeofenceTargetRepository
from .geofence.verifier import GeofenceVerifier
from .organizations.mysql_organization_repository import MySQLOrganizationRepository
from .organizations.repository import OrganizationRepository
from .organizations.service import OrganizationPolicyService
from .requests.mysql_request_repository import MySQLOutOfRangeRequestRepository
from .requests.repository import OutOfRangeRequestRepository
from .requests.service import OutOfRangeRequestService
from .shifts.mysql_shift_repository import MySQLShiftRepository
from .shifts.report import ShiftReportService
from .shifts.repository import ShiftRepository
from .shifts.service import ShiftLedger
from .stale.service import StaleShiftService


@dataclass(frozen=True)
class Container:
    shifts_repo: ShiftRepository
    geofences_repo: GeofenceTargetRepository
    organizations_repo: OrganizationRepository
    requests_repo: OutOfRangeRequestRepository
    audit_repo: AuditRepository

    policy_service: OrganizationPolicyService
    audit_trail: AuditTrail
    shift_ledger: ShiftLedger
    stale_service: StaleShiftService
    request_service: OutOfRangeRequestService
    report_service: ShiftReportService


def wire(
    *,
    shifts_repo: ShiftRepository,
    geofences_repo: GeofenceTargetRepository,
    organizations_repo: OrganizationRepository,
    requests_repo: OutOfRangeRequestRepository,
    audit_repo: AuditRepository,
    policy_defaults: Optional[Mapping[str, Any]] = None,
    clock=None,
) -> Container:
    """Assemble the services over any set of repositories (MySQL in production, fakes in tests)."""
    clock_kwargs = {"clock": clock} if clock is not None else {}

    policy_service = OrganizationPolicyService(organizations_repo, defaults=policy_defaults)
    audit_trail = AuditTrail(audit_repo)
    verifier = GeofenceVerifier(factory=LocationCheckFactory(), **clock_kwargs)

    shift_ledger = ShiftLedger(
        shifts_repo,
        geofences_repo,
        policy_service,
        verifier=verifier,
        audit=audit_trail,
        **clock_kwargs,
    )
    stale_service = StaleShiftService(shifts_repo, policy_service, audit=audit_trail, **clock_kwargs)
    request_service = OutOfRangeRequestService(
        requests_repo,
        shift_ledger,
        geofences_repo,
        policy_service,
        verifier=verifier,
        audit=audit_trail,
        **clock_kwargs,
    )
    report_service = ShiftReportService(shifts_repo, policy_service)

    return Container(
        shifts_repo=shifts_repo,
        geofences_repo=geofences_repo,
        organizations_repo=organizations_repo,
        requests_repo=requests_repo,
        audit_repo=audit_repo,
        policy_service=policy_service,
        audit_trail=audit_trail,
        shift_ledger=shift_ledger,
        stale_service=stale_service,
        request_service=request_service,
        report_service=report_service,
    )


def build_container(
    *,
    db_config: dict,
    policy_defaults: Optional[Mapping[str, Any]] = None,
    lock_timeout_seconds: int = DEFAULT_LOCK_TIMEOUT_SECONDS,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        lock_timeout_seconds=int(lock_timeout_seconds),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire(
        shifts_repo=MySQLShiftRepository(conn),
        geofences_repo=MySQLGeofenceTargetRepository(conn),
        organizations_repo=MySQLOrganizationRepository(conn),
        requests_repo=MySQLOutOfRangeRequestRepository(conn),
        audit_repo=MySQLAuditRepository(conn),
        policy_defaults=policy_defaults,
    )
