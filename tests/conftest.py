from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.campus_attendance.campus_attendance.common.datetime_utils import epoch_ms
from src.campus_attendance.campus_attendance.geofence.model import LocationSample
from tests.fakes import CAMPUS, World


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def on_campus(fixed_now):
    return LocationSample(CAMPUS[0], CAMPUS[1], 8.0, epoch_ms(fixed_now))


@pytest.fixture
def off_campus(fixed_now):
    # ~600m north of the campus center
    return LocationSample(CAMPUS[0] + 0.0054, CAMPUS[1], 8.0, epoch_ms(fixed_now))
