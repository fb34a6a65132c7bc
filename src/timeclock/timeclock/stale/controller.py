from __future__ import annotations

from flask import Flask, jsonify

from ..common.validators import require_non_empty
from ..common.web import current_user, json_body, manager_required, parse_timestamp
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/shifts/stale", methods=["GET"], endpoint="api_stale_shifts")
    @manager_required
    def api_stale_shifts():
        user = current_user()
        stale = container.stale_service.list_stale(user["organization_id"])
        return jsonify({"success": True, "shifts": [s.to_dict() for s in stale]})

    @app.route("/api/shifts/stale/resolve", methods=["POST"], endpoint="api_resolve_stale_shift")
    @manager_required
    def api_resolve_stale_shift():
        user = current_user()
        data = json_body()
        raw_out = data.get("actual_clock_out")

        shift = container.stale_service.resolve(
            require_non_empty(str(data.get("shift_id") or ""), "shift_id"),
            require_non_empty(str(data.get("resolution") or ""), "resolution"),
            parse_timestamp(raw_out, "actual_clock_out") if raw_out is not None else None,
            actor_id=user["user_id"],
            actor_role=user["role"],
            organization_id=user["organization_id"],
        )
        return jsonify({"success": True, "shift": shift.to_dict()})
