"""Mark attendance from the command line.

Reads its inputs from the environment (or .env):
    ATTENDANCE_API_URL   default http://localhost:5000
    STUDENT_EMAIL, STUDENT_PASSWORD, DEVICE_ID
    LATITUDE, LONGITUDE, ACCURACY_METERS (optional, default 10)
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from src.campus_attendance.campus_attendance.client import ApiError, AttendanceApiClient
from src.campus_attendance.campus_attendance.core.exceptions import GeoError
from src.campus_attendance.campus_attendance.geofence.provider import StaticLocationProvider
from src.campus_attendance.campus_attendance.geofence.tracker import LocationTracker


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise SystemExit(f"Missing environment variable {name}")
    return value


async def run() -> int:
    client = AttendanceApiClient(
        os.getenv("ATTENDANCE_API_URL", "http://localhost:5000"),
        device_id=_require_env("DEVICE_ID"),
    )
    user = client.login(_require_env("STUDENT_EMAIL"), _require_env("STUDENT_PASSWORD"))
    print(f"Logged in as {user['displayName']} ({user['email']})")

    enrolled = client.my_class()
    if not enrolled or enrolled.get("enrollmentStatus") != "APPROVED":
        print("You are not enrolled in a class yet.")
        return 1
    if not enrolled.get("isActive"):
        print(f"No active session for {enrolled['name']}.")
        return 1

    provider = StaticLocationProvider(
        float(_require_env("LATITUDE")),
        float(_require_env("LONGITUDE")),
        float(os.getenv("ACCURACY_METERS", "10")),
    )
    tracker = LocationTracker(provider, client.geo_settings())
    try:
        sample = await tracker.acquire()
        verdict = tracker.state.verdict
        print(f"Distance from campus: {verdict.distance_meters:.1f}m (within={verdict.within_campus})")
        result = client.check_in(enrolled["classId"], sample)
        print(result.get("message", ""))
        if result.get("accepted"):
            present = sum(1 for r in client.my_records() if r["verified"])
            print(f"Sessions attended so far: {present}")
    finally:
        await tracker.close()
        client.logout()

    return 0 if result.get("accepted") else 2


def main() -> None:
    load_dotenv(override=False)
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())
    try:
        code = asyncio.run(run())
    except (ApiError, GeoError) as e:
        print(f"Error: {e}")
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
