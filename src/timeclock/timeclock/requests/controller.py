from __future__ import annotations

from flask import Flask, jsonify

from ..common.web import current_user, json_body, login_required, manager_required, parse_location, parse_timestamp
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/requests", methods=["POST"], endpoint="api_submit_request")
    @login_required
    def api_submit_request():
        user = current_user()
        data = json_body()
        raw_requested_at = data.get("requested_at")

        req = container.request_service.submit(
            user_id=user["user_id"],
            organization_id=user["organization_id"],
            request_type=data.get("type") or "",
            reason=data.get("reason") or "",
            distance_from_geofence=data.get("distance_from_geofence"),
            sample=parse_location(data.get("location"), required=False),
            requested_at=parse_timestamp(raw_requested_at, "requested_at") if raw_requested_at is not None else None,
        )
        return jsonify({"success": True, "request": req.to_dict()}), 201

    @app.route("/api/requests", methods=["GET"], endpoint="api_my_requests")
    @login_required
    def api_my_requests():
        user = current_user()
        rows = container.request_service.list_for_user(user["user_id"])
        return jsonify({"success": True, "requests": [r.to_dict() for r in rows]})

    @app.route("/api/requests/pending", methods=["GET"], endpoint="api_pending_requests")
    @manager_required
    def api_pending_requests():
        user = current_user()
        rows = container.request_service.list_pending(user["organization_id"])
        return jsonify({"success": True, "requests": [r.to_dict() for r in rows]})

    @app.route("/api/requests/<request_id>/decision", methods=["POST"], endpoint="api_decide_request")
    @manager_required
    def api_decide_request(request_id: str):
        user = current_user()
        data = json_body()
        decision = (data.get("decision") or "").strip().lower()
        note = (data.get("note") or "").strip() or None

        if decision == "approve":
            shift = container.request_service.approve(
                request_id,
                reviewer_id=user["user_id"],
                reviewer_role=user["role"],
                note=note,
                organization_id=user["organization_id"],
            )
            return jsonify({"success": True, "status": "approved", "shift": shift.to_dict()})
        if decision == "deny":
            req = container.request_service.deny(
                request_id,
                reviewer_id=user["user_id"],
                reviewer_role=user["role"],
                note=note,
                organization_id=user["organization_id"],
            )
            return jsonify({"success": True, "status": "denied", "request": req.to_dict()})

        raise ValidationError("decision must be 'approve' or 'deny'")
