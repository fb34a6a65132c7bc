from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..core.exceptions import ValidationError
from ..organizations.service import OrganizationPolicyService
from .duration import DurationCalculator, format_minutes
from .model import Shift
from .repository import ShiftRepository


@dataclass(frozen=True)
class TimesheetData:
    rows: list[dict]
    summary: list[dict]

    def to_dict(self) -> dict:
        return {"success": True, "rows": self.rows, "summary": self.summary}


class ShiftReportService:
    def __init__(self, shifts: ShiftRepository, policies: OrganizationPolicyService):
        self._shifts = shifts
        self._policies = policies

    @staticmethod
    def _work_date(shift: Shift, calc: DurationCalculator) -> date:
        # Zero-length (forgot) shifts have no interval to attribute.
        if shift.clock_out_at is None or shift.clock_out_at <= shift.clock_in_at:
            return shift.shift_date
        return calc.compute(shift.clock_in_at, shift.clock_out_at).attributed_date

    def build_timesheet(
        self,
        *,
        organization_id: str,
        start: date,
        end: date,
        user_id: Optional[str] = None,
    ) -> TimesheetData:
        if end < start:
            raise ValidationError("End date must not be before start date")

        policy = self._policies.for_organization(organization_id)
        calc = policy.duration_calculator()
        # A shift started the day before may be attributed into the window.
        shifts = self._shifts.list_for_report(
            organization_id=organization_id,
            start_date=start - timedelta(days=1),
            end_date=end,
            user_id=user_id,
        )

        summary_map: dict[str, dict] = {}
        out_rows: list[dict] = []

        for s in shifts:
            work_date = self._work_date(s, calc)
            if not start <= work_date <= end:
                continue

            net = int(s.net_duration_minutes or 0)
            local_in = calc.local(s.clock_in_at)
            local_out = calc.local(s.clock_out_at) if s.clock_out_at else None
            out_rows.append(
                {
                    "shift_id": s.shift_id,
                    "user_id": s.user_id,
                    "work_date": work_date.isoformat(),
                    "clock_in": local_in.strftime("%H:%M"),
                    "clock_out": local_out.strftime("%H:%M") if local_out else "-",
                    "crossed_midnight": bool(local_out and local_out.date() != local_in.date()),
                    "duration_minutes": int(s.duration_minutes or 0),
                    "break_minutes": int(s.break_minutes or 0),
                    "net_minutes": net,
                    "worked": format_minutes(net),
                    "status": s.status.value,
                    "is_revised": s.is_revised,
                }
            )

            entry = summary_map.get(s.user_id)
            if not entry:
                entry = {"user_id": s.user_id, "shift_count": 0, "total_minutes": 0}
                summary_map[s.user_id] = entry
            entry["shift_count"] += 1
            entry["total_minutes"] += net

        out_rows.sort(key=lambda r: (r["work_date"], r["user_id"], r["clock_in"]))

        summary = []
        for entry in summary_map.values():
            total = int(entry["total_minutes"])
            summary.append({**entry, "total": format_minutes(total)})

        summary.sort(key=lambda x: x["total_minutes"], reverse=True)
        return TimesheetData(rows=out_rows, summary=summary)
