from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Iterable

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import RejectionKind, Role
from ..core.exceptions import DomainError, InvalidTokenError, StorageError

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    RejectionKind.ACCESS_DENIED: 403,
    RejectionKind.AUTHENTICATION: 401,
    RejectionKind.NOT_FOUND: 404,
}


def ok(data: Any = None, message: str | None = None, status: int = 200, **extra):
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int = 400, **extra):
    body: dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def status_for(error: DomainError) -> int:
    if isinstance(error, InvalidTokenError):
        return 404 if error.reason == "not_found" else 400
    return _STATUS_BY_KIND.get(error.kind, 400)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError):
        return fail(str(error), status_for(error), error=error.kind.value)

    @app.errorhandler(StorageError)
    def handle_storage_error(error: StorageError):
        logger.error("Storage failure: %s", error)
        return fail("Service temporarily unavailable", 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return fail(error.description or error.name, error.code or 500)
        logger.exception("Unhandled error on %s", request.path)
        return fail("Internal server error", 500)


def current_user_id() -> int:
    return int(session["user_id"])


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return fail("Not authenticated", 401)
        return view(*args, **kwargs)

    return wrapper


def roles_required(roles: Iterable[Role]):
    allowed = {Role(r).value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return fail("Not authenticated", 401)
            if session.get("role") not in allowed:
                return fail("Access denied", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator
