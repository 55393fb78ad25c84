from __future__ import annotations

from flask import Flask, request

from ..common.http import api_login_required, context_params, current_actor, ok
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("JSON body is required")
    return body


def _absent_rolls(body: dict) -> list[str]:
    raw = body.get("absent_roll_numbers", body.get("absentRollNumbers", []))
    if not isinstance(raw, list):
        raise ValidationError("absent_roll_numbers must be a list")
    return [str(r) for r in raw]


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance", methods=["POST"], endpoint="api_attendance_mark")
    @api_login_required
    def api_attendance_mark():
        actor = current_actor()
        body = _json_body()
        entry = container.ledger_service.mark(
            actor,
            context_params(body, actor),
            body.get("date"),
            _absent_rolls(body),
            notes=body.get("notes"),
            draft=bool(body.get("draft", False)),
        )
        return ok(entry.to_dict(), 201)

    @app.route("/api/attendance", methods=["PUT"], endpoint="api_attendance_edit")
    @api_login_required
    def api_attendance_edit():
        actor = current_actor()
        body = _json_body()
        if not body.get("date"):
            raise ValidationError("date is required")
        entry = container.ledger_service.edit(
            actor,
            context_params(body, actor),
            body["date"],
            _absent_rolls(body),
            notes=body.get("notes"),
        )
        return ok(entry.to_dict())

    @app.route("/api/attendance/finalize", methods=["POST"], endpoint="api_attendance_finalize")
    @api_login_required
    def api_attendance_finalize():
        actor = current_actor()
        body = _json_body()
        if not body.get("date"):
            raise ValidationError("date is required")
        entry = container.ledger_service.finalize(actor, context_params(body, actor), body["date"])
        return ok(entry.to_dict())

    @app.route("/api/attendance/report", methods=["GET"], endpoint="api_attendance_report")
    @api_login_required
    def api_attendance_report():
        actor = current_actor()
        if actor.role == Role.STUDENT:
            raise AuthorizationError("Students cannot view class reports")

        key = request.args.get("composite_key", "").strip()
        start = request.args.get("start", "").strip()
        end = request.args.get("end", "").strip()
        if not key or not start or not end:
            raise ValidationError("composite_key, start and end are required")

        report = container.ledger_service.report(
            key, start, end, owner_faculty_id=request.args.get("faculty_id") or None
        )
        return ok(report.to_dict())
