from __future__ import annotations

from typing import Any, Optional

import requests

from .geofence.model import GeoSettings, LocationSample

DEFAULT_TIMEOUT_SECONDS = 10


class ApiError(Exception):
    """Non-success answer from the attendance API."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class AttendanceApiClient:
    """Student-side HTTP client (cookie session kept by requests.Session)."""

    def __init__(
        self,
        base_url: str,
        *,
        device_id: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._base_url = base_url.rstrip("/")
        self._device_id = device_id
        self._http = session or requests.Session()
        self._timeout = timeout

    def _call(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        try:
            response = self._http.request(
                method,
                f"{self._base_url}{path}",
                json=payload,
                headers={"X-Device-Id": self._device_id},
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ApiError(0, f"Cannot reach server: {e}") from e

        try:
            body: Any = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400 or not body.get("success", False):
            raise ApiError(response.status_code, str(body.get("message") or response.reason))
        return body

    def login(self, email: str, password: str) -> dict:
        body = self._call("POST", "/api/login", {"email": email, "password": password, "deviceId": self._device_id})
        return body["user"]

    def logout(self) -> None:
        self._call("POST", "/api/logout")

    def my_class(self) -> Optional[dict]:
        body = self._call("GET", "/api/classes")
        if not body.get("class"):
            return None
        return {**body["class"], "enrollmentStatus": body.get("status")}

    def geo_settings(self) -> GeoSettings:
        data = self._call("GET", "/api/settings/geolocation")["settings"]
        return GeoSettings(
            center_latitude=float(data["centerLatitude"]),
            center_longitude=float(data["centerLongitude"]),
            max_radius_meters=float(data["maxRadiusMeters"]),
        )

    def check_in(self, class_id: str, sample: LocationSample) -> dict:
        payload = {
            **sample.to_dict(),
            "capturedAt": sample.captured_at_epoch_ms,
            "deviceId": self._device_id,
        }
        return self._call("POST", f"/api/classes/{class_id}/check-in", payload)["result"]

    def my_records(self, limit: int = 20) -> list:
        return self._call("GET", f"/api/me/records?limit={int(limit)}")["records"]
