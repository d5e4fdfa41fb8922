from __future__ import annotations

from datetime import timedelta

import pytest

from src.campus_attendance.campus_attendance.attendance.live import PendingCheckInStore
from src.campus_attendance.campus_attendance.attendance.model import PendingCheckIn, record_id_for, session_id_for
from src.campus_attendance.campus_attendance.common.datetime_utils import epoch_ms, iso_date
from src.campus_attendance.campus_attendance.core.exceptions import (
    AuthorizationError,
    DeviceMismatchError,
    NotFoundError,
    SessionStateViolation,
    StoreWriteFailure,
    ValidationError,
)


@pytest.fixture
def cs101(world, fixed_now):
    admin = world.add_user("admin", is_admin=True)
    students = [world.add_user(f"s{i}", device_id=f"dev-s{i}", roll_number=f"R{i}") for i in (1, 2, 3)]
    world.add_class("cs101", admin, created_at=fixed_now, students=students)
    return admin, students


def _check_in(world, student, sample, now):
    return world.container.session_service.check_in(
        student, "cs101", sample, device_id=student.device_id, now=now
    )


def test_closing_a_session_marks_every_enrolled_student(world, cs101, fixed_now, on_campus):
    admin, (s1, s2, s3) = cs101
    service = world.container.session_service

    cls = service.start_session(admin, "cs101", now=fixed_now)
    session_id = cls.current_session_id
    assert session_id == session_id_for("cs101", fixed_now)
    assert cls.is_active is True

    _check_in(world, s1, on_campus, fixed_now + timedelta(minutes=1))
    _check_in(world, s2, on_campus, fixed_now + timedelta(minutes=2))

    summary = service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=10))
    assert (summary.present, summary.absent, summary.total) == (2, 1, 3)

    records = {r.user_id: r for r in world.records.list_for_session("cs101", session_id)}
    assert set(records) == {"s1", "s2", "s3"}
    assert records["s1"].verified and records["s2"].verified
    assert records["s3"].verified is False
    assert records["s3"].automarked is True
    assert records["s3"].roll_number == "R3"

    cls = world.container.class_service.get_class("cs101")
    assert cls.is_active is False
    assert cls.current_session_id is None
    assert cls.last_session_id == session_id
    assert world.realtime.get("attendancePending/cs101") is None
    assert world.realtime.get("classStatus/cs101")["isActive"] is False


def test_start_requires_an_inactive_class(world, cs101, fixed_now):
    admin, _ = cs101
    service = world.container.session_service
    service.start_session(admin, "cs101", now=fixed_now)

    with pytest.raises(SessionStateViolation):
        service.start_session(admin, "cs101", now=fixed_now + timedelta(minutes=1))


def test_end_requires_an_active_session(world, cs101, fixed_now):
    admin, _ = cs101
    with pytest.raises(SessionStateViolation):
        world.container.session_service.end_session(admin, "cs101", now=fixed_now)


def test_only_managing_admins_control_sessions(world, cs101, fixed_now):
    _, (s1, _, _) = cs101
    other = world.add_user("other", is_admin=True)
    service = world.container.session_service

    with pytest.raises(AuthorizationError):
        service.start_session(s1, "cs101", now=fixed_now)
    with pytest.raises(AuthorizationError):
        service.start_session(other, "cs101", now=fixed_now)

    cls = service.start_session(other, "cs101", granted=["cs101"], now=fixed_now)
    assert cls.is_active is True


@pytest.mark.parametrize("duration", [-5, float("inf"), float("nan"), 10**12, 0.9, True, "ten", 24 * 60 + 1])
def test_bad_duration_is_rejected(world, cs101, fixed_now, duration):
    admin, _ = cs101
    with pytest.raises(ValidationError):
        world.container.session_service.start_session(admin, "cs101", duration, now=fixed_now)

    assert world.container.class_service.get_class("cs101").is_active is False


def test_whole_number_durations_are_accepted(world, cs101, fixed_now):
    admin, _ = cs101
    cls = world.container.session_service.start_session(admin, "cs101", 90.0, now=fixed_now)

    assert cls.duration_minutes == 90
    assert cls.end_time == fixed_now + timedelta(minutes=90)


def test_repeat_check_in_keeps_one_record(world, cs101, fixed_now, on_campus):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    session_id = service.start_session(admin, "cs101", now=fixed_now).current_session_id

    _check_in(world, s1, on_campus, fixed_now + timedelta(minutes=1))
    later = fixed_now + timedelta(minutes=3)
    _check_in(world, s1, on_campus, later)

    records = world.records.list_for_session("cs101", session_id)
    assert len(records) == 1
    assert records[0].timestamp == later
    assert [p.user_id for p in service.live_snapshot("cs101").check_ins] == ["s1"]


def test_out_of_range_check_in_is_a_negative_result(world, cs101, fixed_now, off_campus):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    service.start_session(admin, "cs101", now=fixed_now)

    result = _check_in(world, s1, off_campus, fixed_now)

    assert result.accepted is False
    assert result.record is None
    assert result.verdict.distance_meters > 500
    assert "100m" in result.message
    assert world.records.by_id == {}
    assert service.live_snapshot("cs101").check_ins == ()


def test_check_in_preconditions(world, cs101, fixed_now, on_campus):
    admin, (s1, _, _) = cs101
    outsider = world.add_user("outsider")
    service = world.container.session_service

    with pytest.raises(SessionStateViolation):
        _check_in(world, s1, on_campus, fixed_now)

    service.start_session(admin, "cs101", now=fixed_now)
    with pytest.raises(AuthorizationError):
        service.check_in(outsider, "cs101", on_campus, now=fixed_now)
    with pytest.raises(DeviceMismatchError):
        service.check_in(s1, "cs101", on_campus, device_id="someone-else", now=fixed_now)
    with pytest.raises(ValidationError):
        service.check_in(admin, "cs101", on_campus, now=fixed_now)
    with pytest.raises(NotFoundError):
        service.check_in(s1, "missing", on_campus, now=fixed_now)


def test_unbound_student_may_check_in_from_any_device(world, fixed_now, on_campus):
    admin = world.add_user("admin", is_admin=True)
    fresh = world.add_user("fresh")
    world.add_class("cs101", admin, created_at=fixed_now, students=[fresh])
    service = world.container.session_service
    service.start_session(admin, "cs101", now=fixed_now)

    result = service.check_in(fresh, "cs101", on_campus, device_id=None, now=fixed_now)
    assert result.accepted is True


def test_existing_record_wins_over_automark(world, cs101, fixed_now, on_campus):
    admin, (s1, s2, s3) = cs101
    service = world.container.session_service
    session_id = service.start_session(admin, "cs101", now=fixed_now).current_session_id

    _check_in(world, s1, on_campus, fixed_now)
    manual = service.add_manual_record(admin, "cs101", "s3", now=fixed_now)
    assert manual.session_id == session_id
    assert manual.manually_added is True

    summary = service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=5))

    assert (summary.present, summary.absent) == (2, 1)
    kept = world.records.get(record_id_for("s3", "cs101", session_id))
    assert kept.verified is True
    assert kept.automarked is False


def test_failed_close_leaves_session_open(world, cs101, fixed_now, on_campus):
    admin, (s1, s2, _) = cs101
    service = world.container.session_service
    service.start_session(admin, "cs101", now=fixed_now)
    _check_in(world, s1, on_campus, fixed_now)
    _check_in(world, s2, on_campus, fixed_now)

    world.sessions.fail_on_close = True
    with pytest.raises(StoreWriteFailure):
        service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=5))

    assert world.container.class_service.get_class("cs101").is_active is True
    assert len(service.live_snapshot("cs101").check_ins) == 2

    world.sessions.fail_on_close = False
    summary = service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=6))
    assert summary.total == 3


def test_timed_session_closes_when_it_expires(world, cs101, fixed_now):
    admin, _ = cs101
    service = world.container.session_service
    cls = service.start_session(admin, "cs101", 30, now=fixed_now)
    assert cls.end_time == fixed_now + timedelta(minutes=30)
    assert cls.duration_minutes == 30

    assert service.close_expired_sessions(fixed_now + timedelta(minutes=29)) == []

    closed = service.close_expired_sessions(fixed_now + timedelta(minutes=30))
    assert [s.class_id for s in closed] == ["cs101"]
    assert closed[0].absent == 3
    assert world.container.class_service.get_class("cs101").is_active is False


def test_delete_session_is_blocked_while_active(world, cs101, fixed_now, on_campus):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    session_id = service.start_session(admin, "cs101", now=fixed_now).current_session_id
    _check_in(world, s1, on_campus, fixed_now)

    with pytest.raises(SessionStateViolation):
        service.delete_session(admin, "cs101", session_id)

    service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=1))
    assert service.delete_session(admin, "cs101", session_id) == 3
    assert world.records.list_for_session("cs101", session_id) == []


def test_toggle_flips_verified_and_marks_manual_update(world, cs101, fixed_now):
    admin, _ = cs101
    service = world.container.session_service
    session_id = service.start_session(admin, "cs101", now=fixed_now).current_session_id
    service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=1))

    record_id = record_id_for("s2", "cs101", session_id)
    later = fixed_now + timedelta(hours=1)
    toggled = service.toggle_record_status(admin, record_id, now=later)

    assert toggled.verified is True
    assert toggled.manually_updated is True
    assert toggled.manually_updated_at == later
    assert service.toggle_record_status(admin, record_id, now=later).verified is False

    with pytest.raises(NotFoundError):
        service.toggle_record_status(admin, "nope", now=later)


def test_manual_record_rules(world, cs101, fixed_now):
    admin, _ = cs101
    service = world.container.session_service

    with pytest.raises(ValidationError):
        service.add_manual_record(admin, "cs101", "s1", now=fixed_now)

    service.start_session(admin, "cs101", now=fixed_now)
    service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=1))

    with pytest.raises(ValidationError):
        # automarked absence already exists for the last session
        service.add_manual_record(admin, "cs101", "s1", now=fixed_now)
    with pytest.raises(NotFoundError):
        service.add_manual_record(admin, "cs101", "ghost", now=fixed_now)


def test_session_history_is_newest_first(world, cs101, fixed_now, on_campus):
    admin, (s1, _, _) = cs101
    service = world.container.session_service

    first = service.start_session(admin, "cs101", now=fixed_now).current_session_id
    _check_in(world, s1, on_campus, fixed_now)
    service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=5))

    next_day = fixed_now + timedelta(days=1)
    second = service.start_session(admin, "cs101", now=next_day).current_session_id
    service.end_session(admin, "cs101", now=next_day + timedelta(minutes=5))

    history = service.session_history("cs101")
    assert [h.session_id for h in history] == [second, first]
    assert (history[1].present_count, history[1].absent_count, history[1].attendance_count) == (1, 2, 3)
    assert history[0].date == "2025-03-11"
    assert history[1].started_at == fixed_now
    assert len(service.session_history("cs101", limit=1)) == 1

    mine = service.records_for_user("s1")
    assert [r.session_id for r in mine] == [second, first]


def test_live_views_follow_the_session(world, cs101, fixed_now, on_campus):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    live, status = [], []

    status_sub = service.watch_class_status("cs101", status.append)
    live_sub = service.watch_live("cs101", live.append)
    assert status[0]["isActive"] is False
    assert live[0] == []

    service.start_session(admin, "cs101", 15, now=fixed_now)
    _check_in(world, s1, on_campus, fixed_now)
    snapshot = service.live_snapshot("cs101")
    assert (snapshot.is_active, snapshot.enrolled, len(snapshot.check_ins)) == (True, 3, 1)

    service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=2))
    live_sub.cancel()
    status_sub.cancel()

    assert [p.user_id for p in live[-2]] == ["s1"]
    assert live[-1] == []
    assert [s["isActive"] for s in status] == [False, True, False]
    assert status[1]["duration"] == 15
    assert service.live_snapshot("cs101").check_ins == ()


def _pending(student, session_id, at, sample=None):
    return PendingCheckIn(
        user_id=student.user_id,
        email=student.email,
        name=student.name,
        roll_number=student.roll_number,
        timestamp_epoch_ms=epoch_ms(at),
        date=iso_date(at),
        class_id="cs101",
        session_id=session_id,
        location=sample,
    )


def test_pending_check_in_without_record_becomes_present(world, cs101, fixed_now, on_campus):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    session_id = service.start_session(admin, "cs101", now=fixed_now).current_session_id
    checked_at = fixed_now + timedelta(minutes=2)
    PendingCheckInStore(world.realtime).put(_pending(s1, session_id, checked_at, on_campus))
    assert world.records.by_id == {}

    summary = service.end_session(admin, "cs101", now=fixed_now + timedelta(minutes=10))

    record = world.records.get(record_id_for("s1", "cs101", session_id))
    assert record.verified is True
    assert record.automarked is False
    assert record.timestamp == checked_at
    assert (record.location.latitude, record.location.longitude) == (on_campus.latitude, on_campus.longitude)
    assert (summary.present, summary.absent) == (1, 2)


def test_start_clears_leftover_pending_check_ins(world, cs101, fixed_now):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    PendingCheckInStore(world.realtime).put(_pending(s1, "cs101_1", fixed_now))

    service.start_session(admin, "cs101", now=fixed_now)

    assert world.realtime.get("attendancePending/cs101") is None
    assert service.live_snapshot("cs101").check_ins == ()


def test_lost_open_race_keeps_the_winners_pending_entries(world, cs101, fixed_now, monkeypatch):
    admin, (s1, _, _) = cs101
    service = world.container.session_service
    PendingCheckInStore(world.realtime).put(_pending(s1, "cs101_other", fixed_now))
    monkeypatch.setattr(world.sessions, "open_session", lambda **kwargs: False)

    with pytest.raises(SessionStateViolation):
        service.start_session(admin, "cs101", now=fixed_now)

    assert list(world.realtime.get("attendancePending/cs101")) == ["s1"]
