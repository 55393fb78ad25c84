"""JSON helpers shared by the Flask controllers."""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Mapping

from flask import Flask, jsonify, session

from ..core.exceptions import (
    AuthorizationError,
    DomainError,
    DuplicateEntry,
    EditWindowExpired,
    InvariantViolation,
    NotFound,
    ValidationError,
)
from ..users.model import Actor

logger = logging.getLogger(__name__)

# first match wins, so subclasses come before their parents
_STATUS_BY_ERROR: tuple[tuple[type, int], ...] = (
    (InvariantViolation, 422),
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFound, 404),
    (EditWindowExpired, 409),
    (DuplicateEntry, 409),
)


def status_for(error: DomainError) -> int:
    for kind, status in _STATUS_BY_ERROR:
        if isinstance(error, kind):
            return status
    return 400


def ok(data: Any, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def error_response(error: DomainError):
    body = {"code": error.code, "message": error.message or str(error), "details": error.details}
    return jsonify({"success": False, "error": body}), status_for(error)


def current_actor() -> Actor:
    return Actor.from_mapping(session)


def api_login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            raise AuthorizationError("Please sign in to continue")
        return view(*args, **kwargs)

    return wrapper


def context_params(source: Mapping[str, Any], actor: Actor) -> dict:
    """Class parameters from a query string or JSON body; department defaults to the caller's."""
    params = {
        k: source.get(k)
        for k in ("year", "semester", "section", "batch", "batchYear", "batch_year", "composite_key", "classId")
        if source.get(k) not in (None, "")
    }
    params["department"] = source.get("department") or actor.department
    return params


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError):
        if isinstance(error, AuthorizationError):
            logger.warning("%s: %s", error.code, error.message)
        return error_response(error)
