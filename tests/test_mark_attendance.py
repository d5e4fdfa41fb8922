import asyncio

import pytest

from scripts import mark_attendance
from src.campus_attendance.campus_attendance.geofence.model import GeoSettings


class FakeClient:
    instances = []

    def __init__(self, base_url, *, device_id, answer=None):
        self.base_url = base_url
        self.device_id = device_id
        self.answer = answer
        self.logged_out = False
        self.checked_in = None
        FakeClient.instances.append(self)

    def login(self, email, password):
        return {"displayName": "Student One", "email": email}

    def my_class(self):
        return {"classId": "cs101", "name": "Networks", "isActive": True, "enrollmentStatus": "APPROVED"}

    def geo_settings(self):
        return GeoSettings(22.6288, 88.4682, 100.0)

    def check_in(self, class_id, sample):
        self.checked_in = (class_id, sample)
        return self.answer

    def my_records(self):
        return [{"verified": True}, {"verified": False}, {"verified": True}]

    def logout(self):
        self.logged_out = True


@pytest.fixture
def student_env(monkeypatch):
    FakeClient.instances = []
    for name, value in {
        "DEVICE_ID": "phone-a",
        "STUDENT_EMAIL": "s1@campus.edu",
        "STUDENT_PASSWORD": "secret123",
        "LATITUDE": "22.6288",
        "LONGITUDE": "88.4682",
    }.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("ATTENDANCE_API_URL", raising=False)

    def use_answer(answer):
        monkeypatch.setattr(
            mark_attendance,
            "AttendanceApiClient",
            lambda base_url, *, device_id: FakeClient(base_url, device_id=device_id, answer=answer),
        )

    return use_answer


def test_accepted_check_in_exits_zero(student_env, capsys):
    student_env({"accepted": True, "message": "Attendance marked"})

    assert asyncio.run(mark_attendance.run()) == 0

    client = FakeClient.instances[0]
    assert client.base_url == "http://localhost:5000"
    assert client.checked_in[0] == "cs101"
    assert client.logged_out is True
    out = capsys.readouterr().out
    assert "Attendance marked" in out
    assert "Sessions attended so far: 2" in out


def test_answer_without_verdict_counts_as_refused(student_env):
    student_env({})

    assert asyncio.run(mark_attendance.run()) == 2
    assert FakeClient.instances[0].logged_out is True
