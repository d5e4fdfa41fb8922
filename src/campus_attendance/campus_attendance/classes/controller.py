from __future__ import annotations

from flask import Flask, session

from ..common.web import current_user, guards, json_body, ok
from ..container import Container
from ..core.enums import EnrollmentStatus


def granted_classes() -> list:
    """Classes of other admins unlocked with their password in this login session."""
    return list(session.get("class_access", []))


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = guards(container.users_repo)
    classes = container.class_service

    @app.route("/api/classes", methods=["POST"], endpoint="api_create_class")
    @admin_required
    def create_class():
        data = json_body()
        cls = classes.create_class(
            actor=current_user(),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            password=data.get("password") or None,
        )
        return ok({"class": cls.to_dict()}, 201)

    @app.route("/api/classes", methods=["GET"], endpoint="api_list_classes")
    @login_required
    def list_classes():
        user = current_user()
        if user.is_admin:
            granted = granted_classes()
            items = [
                {**c.to_dict(), "canManage": classes.can_manage(user, c, granted)}
                for c in classes.list_for_admin(user)
            ]
            return ok({"classes": items, "selectedClassId": user.selected_class_id})

        found = classes.class_for_student(user)
        if not found:
            return ok({"class": None, "status": None})
        cls, status = found
        return ok({"class": cls.to_dict(), "status": status.value})

    @app.route("/api/classes/<class_id>", methods=["DELETE"], endpoint="api_delete_class")
    @admin_required
    def delete_class(class_id: str):
        classes.delete_class(current_user(), class_id)
        container.status_feed.remove(class_id)
        return ok()

    @app.route("/api/classes/<class_id>/access", methods=["POST"], endpoint="api_class_access")
    @admin_required
    def class_access(class_id: str):
        user = current_user()
        cls = classes.verify_admin_access(user, class_id, json_body().get("password"))
        if not cls.is_owned_by(user.user_id):
            session["class_access"] = sorted(set(granted_classes()) | {class_id})
        classes.select_class(user, class_id)
        return ok({"class": cls.to_dict()})

    @app.route("/api/classes/<class_id>/join", methods=["POST"], endpoint="api_join_class")
    @login_required
    def join_class(class_id: str):
        classes.request_enrollment(current_user(), class_id)
        return ok({"status": EnrollmentStatus.PENDING.value}, 201)

    @app.route(
        "/api/classes/<class_id>/enrollments/<student_id>",
        methods=["POST"],
        endpoint="api_decide_enrollment",
    )
    @admin_required
    def decide_enrollment(class_id: str, student_id: str):
        approve = bool(json_body().get("approve", True))
        classes.decide_enrollment(
            current_user(), class_id, student_id, approve=approve, granted=granted_classes()
        )
        return ok({"studentId": student_id, "approved": approve})

    @app.route(
        "/api/classes/<class_id>/students/<student_id>",
        methods=["DELETE"],
        endpoint="api_remove_student",
    )
    @admin_required
    def remove_student(class_id: str, student_id: str):
        classes.remove_student(current_user(), class_id, student_id, granted=granted_classes())
        return ok()
