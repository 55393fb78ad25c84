from __future__ import annotations

from flask import Flask, request

from ..common.http import api_login_required, current_actor, ok
from ..container import Container
from ..core.constants import DEFAULT_AUDIT_FEED_LIMIT
from ..core.exceptions import AuthorizationError, ValidationError


def register(app: Flask, container: Container) -> None:
    @app.route("/api/audit", methods=["GET"], endpoint="api_audit")
    @api_login_required
    def api_audit():
        actor = current_actor()
        try:
            limit = int(request.args.get("limit", DEFAULT_AUDIT_FEED_LIMIT))
        except ValueError:
            raise ValidationError("limit must be a number")

        key = request.args.get("composite_key", "").strip()
        actor_id = request.args.get("actor_id", "").strip()
        if key:
            if not actor.role.is_administrative:
                raise AuthorizationError("Only administrators can read a class audit feed")
            entries = container.audit_log.feed_for_class(key, limit=limit)
        elif actor_id:
            if actor_id != actor.user_id and not actor.role.is_administrative:
                raise AuthorizationError("You can only read your own audit feed")
            entries = container.audit_log.feed_for_actor(actor_id, limit=limit)
        else:
            raise ValidationError("composite_key or actor_id is required")

        return ok([e.to_dict() for e in entries])
