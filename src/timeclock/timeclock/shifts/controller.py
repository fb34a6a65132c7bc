from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.web import current_user, json_body, login_required, parse_location
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/shifts/clock-in", methods=["POST"], endpoint="api_clock_in")
    @login_required
    def api_clock_in():
        user = current_user()
        data = json_body()
        shift = container.shift_ledger.clock_in(
            user_id=user["user_id"],
            organization_id=user["organization_id"],
            sample=parse_location(data.get("location")),
            location_id=data.get("location_id"),
            note=(data.get("notes") or "").strip() or None,
        )
        return jsonify({"success": True, "shift": shift.to_dict()}), 201

    @app.route("/api/shifts/clock-out", methods=["POST"], endpoint="api_clock_out")
    @login_required
    def api_clock_out():
        user = current_user()
        data = json_body()
        result = container.shift_ledger.clock_out(
            user_id=user["user_id"],
            sample=parse_location(data.get("location")),
            location_id=data.get("location_id"),
            note=(data.get("notes") or "").strip() or None,
        )
        return jsonify(result.to_dict())

    @app.route("/api/shifts/current", methods=["GET"], endpoint="api_current_shift")
    @login_required
    def api_current_shift():
        user = current_user()
        shift = container.shift_ledger.current_shift(user["user_id"])
        if shift is None:
            return jsonify({"success": True, "shift": None, "is_stale": False})
        return jsonify(
            {
                "success": True,
                "shift": shift.to_dict(),
                "is_stale": container.stale_service.is_stale(shift),
            }
        )

    @app.route("/api/shifts/history", methods=["GET"], endpoint="api_shift_history")
    @login_required
    def api_shift_history():
        user = current_user()
        try:
            limit = int(request.args.get("limit", DEFAULT_HISTORY_LIMIT))
        except ValueError:
            raise ValidationError("limit must be an integer")
        if limit < 1 or limit > 200:
            raise ValidationError("limit must be between 1 and 200")

        shifts = container.shift_ledger.history(user["user_id"], limit=limit)
        return jsonify({"success": True, "shifts": [s.to_dict() for s in shifts]})

    @app.route("/api/reports/timesheet", methods=["GET"], endpoint="api_timesheet")
    @login_required
    def api_timesheet():
        user = current_user()
        start = parse_iso_date(request.args.get("start", ""))
        end = parse_iso_date(request.args.get("end", ""))

        # Employees only ever see their own rows.
        user_id = request.args.get("user_id") if user["role"].is_manager else user["user_id"]

        data = container.report_service.build_timesheet(
            organization_id=user["organization_id"],
            start=start,
            end=end,
            user_id=user_id or None,
        )
        return jsonify(data.to_dict())
