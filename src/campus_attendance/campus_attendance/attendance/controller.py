from __future__ import annotations

from flask import Flask, request

from ..classes.controller import granted_classes
from ..common.datetime_utils import epoch_ms, now_utc
from ..common.validators import require_non_empty
from ..common.web import current_user, guards, json_body, ok
from ..container import Container
from ..geofence.model import sample_from_payload
from .live import class_status


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = guards(container.users_repo)
    sessions = container.session_service

    @app.route("/api/classes/<class_id>/session/start", methods=["POST"], endpoint="api_start_session")
    @admin_required
    def start_session(class_id: str):
        duration = json_body().get("duration", 0)
        cls = sessions.start_session(current_user(), class_id, duration, granted=granted_classes())
        return ok({"class": cls.to_dict()})

    @app.route("/api/classes/<class_id>/session/end", methods=["POST"], endpoint="api_end_session")
    @admin_required
    def end_session(class_id: str):
        summary = sessions.end_session(current_user(), class_id, granted=granted_classes())
        return ok({"summary": summary.to_dict()})

    @app.route("/api/classes/<class_id>/status", methods=["GET"], endpoint="api_class_status")
    @login_required
    def session_status(class_id: str):
        return ok({"status": class_status(container.class_service.get_class(class_id))})

    @app.route("/api/classes/<class_id>/check-in", methods=["POST"], endpoint="api_check_in")
    @login_required
    def check_in(class_id: str):
        data = json_body()
        sample = sample_from_payload(data, captured_at_epoch_ms=epoch_ms(now_utc()))
        device_id = data.get("deviceId") or request.headers.get("X-Device-Id")
        result = sessions.check_in(current_user(), class_id, sample, device_id=device_id)
        return ok({"result": result.to_dict()})

    @app.route("/api/classes/<class_id>/live", methods=["GET"], endpoint="api_live")
    @admin_required
    def live(class_id: str):
        container.class_service.require_manage(current_user(), class_id, granted_classes())
        return ok({"live": sessions.live_snapshot(class_id).to_dict()})

    @app.route("/api/classes/<class_id>/sessions", methods=["GET"], endpoint="api_session_history")
    @admin_required
    def session_history(class_id: str):
        container.class_service.require_manage(current_user(), class_id, granted_classes())
        limit = request.args.get("limit", type=int) or container.history_limit
        return ok({"sessions": [h.to_dict() for h in sessions.session_history(class_id, limit=limit)]})

    @app.route("/api/classes/<class_id>/sessions/<session_id>", methods=["GET"], endpoint="api_session_records")
    @admin_required
    def session_records(class_id: str, session_id: str):
        container.class_service.require_manage(current_user(), class_id, granted_classes())
        records = sessions.records_for_session(class_id, session_id)
        return ok({"records": [r.to_dict() for r in records]})

    @app.route("/api/classes/<class_id>/sessions/<session_id>", methods=["DELETE"], endpoint="api_delete_session")
    @admin_required
    def delete_session(class_id: str, session_id: str):
        deleted = sessions.delete_session(current_user(), class_id, session_id, granted=granted_classes())
        return ok({"deleted": deleted})

    @app.route(
        "/api/classes/<class_id>/sessions/<session_id>/records",
        methods=["POST"],
        endpoint="api_add_manual_record",
    )
    @admin_required
    def add_manual_record(class_id: str, session_id: str):
        student_id = require_non_empty(str(json_body().get("studentId", "")), "studentId")
        record = sessions.add_manual_record(
            current_user(), class_id, student_id, session_id, granted=granted_classes()
        )
        return ok({"record": record.to_dict()}, 201)

    @app.route("/api/records/<record_id>/toggle", methods=["POST"], endpoint="api_toggle_record")
    @admin_required
    def toggle_record(record_id: str):
        record = sessions.toggle_record_status(current_user(), record_id, granted=granted_classes())
        return ok({"record": record.to_dict()})

    @app.route("/api/me/records", methods=["GET"], endpoint="api_my_records")
    @login_required
    def my_records():
        limit = request.args.get("limit", type=int) or container.history_limit
        records = sessions.records_for_user(current_user().user_id, limit=limit)
        return ok({"records": [r.to_dict() for r in records]})
