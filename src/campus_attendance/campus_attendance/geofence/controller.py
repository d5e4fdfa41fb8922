from __future__ import annotations

from flask import Flask

from ..common.datetime_utils import epoch_ms, now_utc
from ..common.web import current_user, guards, json_body, ok
from ..container import Container
from .model import sample_from_payload


def register(app: Flask, container: Container) -> None:
    login_required, admin_required = guards(container.users_repo)

    @app.route("/api/settings/geolocation", methods=["GET"], endpoint="api_get_geolocation")
    @login_required
    def get_geolocation():
        return ok({"settings": container.geofence_service.load_settings().to_dict()})

    @app.route("/api/settings/geolocation", methods=["PUT"], endpoint="api_put_geolocation")
    @admin_required
    def put_geolocation():
        data = json_body()
        settings = container.geofence_service.save_settings(
            actor=current_user(),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            radius_meters=data.get("maxDistance", data.get("radiusInMeters")),
        )
        return ok({"settings": settings.to_dict()})

    @app.route("/api/geofence/verify", methods=["POST"], endpoint="api_geofence_verify")
    @login_required
    def verify():
        sample = sample_from_payload(json_body(), captured_at_epoch_ms=epoch_ms(now_utc()))
        settings = container.geofence_service.load_settings()
        verdict = container.geofence_service.verify(sample, settings)
        return ok({"verdict": verdict.to_dict(), "settings": settings.to_dict()})
