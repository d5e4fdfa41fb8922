from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import current_app, g, jsonify, request, session

from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DeviceMismatchError,
    DomainError,
    NotFoundError,
    SessionStateViolation,
    StoreWriteFailure,
    ValidationError,
)
from ..users.model import User
from ..users.repository import UserRepository

# Most specific first.
_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (DeviceMismatchError, 403),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (SessionStateViolation, 409),
    (StoreWriteFailure, 503),
    (ValidationError, 400),
)


def error_status(exc: DomainError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


def ok(payload: dict | None = None, status: int = 200):
    return jsonify({"success": True, **(payload or {})}), status


def fail(message: str, status: int = 400):
    return jsonify({"success": False, "message": message}), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def api_errors(view: Callable) -> Callable:
    """Translate domain errors into JSON responses; log anything unexpected."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except DomainError as e:
            return fail(str(e), error_status(e))
        except Exception:
            current_app.logger.exception("Unhandled error in %s", request.path)
            return fail("Internal server error", 500)

    return wrapper


def current_user() -> User:
    return g.current_user


def guards(users: UserRepository) -> tuple[Callable, Callable]:
    """Build (login_required, admin_required) bound to the user directory."""

    def _load() -> User | None:
        user_id = session.get("user_id")
        if not user_id:
            return None
        user = users.get_by_id(str(user_id))
        if not user or not user.is_active:
            session.clear()
            return None
        g.current_user = user
        return user

    def login_required(view):
        @wraps(view)
        @api_errors
        def wrapper(*args: Any, **kwargs: Any):
            if _load() is None:
                return fail("Please log in to continue", 401)
            return view(*args, **kwargs)

        return wrapper

    def admin_required(view):
        @wraps(view)
        @api_errors
        def wrapper(*args: Any, **kwargs: Any):
            user = _load()
            if user is None:
                return fail("Please log in to continue", 401)
            if not user.is_admin:
                return fail("Administrator access required", 403)
            return view(*args, **kwargs)

        return wrapper

    return login_required, admin_required
