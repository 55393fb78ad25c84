from __future__ import annotations

from flask import Flask, request

from ..common.http import api_login_required, context_params, current_actor, ok
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import AuthorizationError


def _truthy(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def register(app: Flask, container: Container) -> None:
    @app.route("/api/roster", methods=["GET"], endpoint="api_roster")
    @api_login_required
    def api_roster():
        actor = current_actor()
        if actor.role == Role.STUDENT:
            raise AuthorizationError("Students cannot view class rosters")

        result = container.roster_service.resolve_roster(
            actor,
            context_params(request.args, actor),
            owner_faculty_id=request.args.get("faculty_id") or None,
            authorize_corrections=_truthy(request.args.get("authorize_corrections")),
        )
        return ok(result.to_dict())

    @app.route("/api/roster/drift", methods=["GET"], endpoint="api_roster_drift")
    @api_login_required
    def api_roster_drift():
        actor = current_actor()
        if actor.role == Role.STUDENT:
            raise AuthorizationError("Students cannot inspect class rosters")

        issues = container.roster_service.detect_drift(actor, context_params(request.args, actor))
        return ok({"total": len(issues), "issues": [i.to_dict() for i in issues]})
