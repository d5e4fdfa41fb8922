from __future__ import annotations

from flask import Flask, session

from ..common.web import api_errors, current_user, guards, json_body, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = guards(container.users_repo)

    @app.route("/api/login", methods=["POST"], endpoint="api_login")
    @api_errors
    def login():
        data = json_body()
        user = container.auth_service.authenticate(
            str(data.get("email", "")),
            str(data.get("password", "")),
            data.get("deviceId"),
        )
        session.clear()
        session["user_id"] = user.user_id
        session["is_admin"] = user.is_admin
        return ok({"user": user.public_dict()})

    @app.route("/api/logout", methods=["POST"], endpoint="api_logout")
    def logout():
        session.clear()
        return ok()

    @app.route("/api/me", methods=["GET"], endpoint="api_me")
    @login_required
    def me():
        return ok({"user": current_user().public_dict()})

    @app.route("/api/users/<user_id>/reset-device", methods=["POST"], endpoint="api_reset_device")
    @admin_required
    def reset_device(user_id: str):
        container.user_service.reset_device(actor=current_user(), user_id=user_id)
        return ok()

    @app.route("/api/users/<user_id>/admin", methods=["POST"], endpoint="api_set_admin")
    @admin_required
    def set_admin(user_id: str):
        is_admin = bool(json_body().get("isAdmin", True))
        container.user_service.set_admin(actor=current_user(), user_id=user_id, is_admin=is_admin)
        return ok({"userId": user_id, "isAdmin": is_admin})
