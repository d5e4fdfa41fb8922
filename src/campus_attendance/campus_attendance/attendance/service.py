from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..classes.model import Class
from ..classes.service import ClassService
from ..common.datetime_utils import epoch_ms, from_epoch_ms, iso_date, now_utc
from ..common.validators import require_non_negative_int
from ..core.constants import DEFAULT_HISTORY_LIMIT, MAX_SESSION_DURATION_MINUTES
from ..core.exceptions import (
    AuthorizationError,
    DeviceMismatchError,
    NotFoundError,
    SessionStateViolation,
    ValidationError,
)
from ..geofence.model import LocationSample
from ..geofence.service import GeofenceService
from ..realtime.store import Subscription
from ..users.model import User
from ..users.repository import UserRepository
from .live import ClassStatusFeed, PendingCheckInStore
from .locks import ClassLockRegistry
from .model import (
    AttendanceRecord,
    CheckInResult,
    LiveSnapshot,
    PendingCheckIn,
    SessionHistory,
    SessionSummary,
    session_id_for,
    session_started_at,
)
from .repository import AttendanceRepository, SessionRepository

logger = logging.getLogger(__name__)


class AttendanceSessionService:
    """Session state machine of a class: Inactive -> Active -> Inactive.

    start_session opens a session, check_in records presence while it is
    open, end_session materialises every enrolled student's record and closes
    it. Transitions of one class are serialised by a per-class lock; the
    repository writes are conditional on the expected state.
    """

    def __init__(
        self,
        *,
        classes: ClassService,
        sessions: SessionRepository,
        records: AttendanceRepository,
        users: UserRepository,
        geofence: GeofenceService,
        pending: PendingCheckInStore,
        status: ClassStatusFeed,
        locks: Optional[ClassLockRegistry] = None,
    ):
        self._classes = classes
        self._sessions = sessions
        self._records = records
        self._users = users
        self._geofence = geofence
        self._pending = pending
        self._status = status
        self._locks = locks or ClassLockRegistry()

    # --- transitions ---

    def start_session(
        self,
        actor: User,
        class_id: str,
        duration_minutes: int = 0,
        *,
        granted: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> Class:
        duration = require_non_negative_int(
            duration_minutes or 0, "Duration", high=MAX_SESSION_DURATION_MINUTES
        )
        with self._locks.hold(class_id):
            cls = self._classes.require_manage(actor, class_id, granted)
            if cls.is_active:
                raise SessionStateViolation("A session is already active for this class")

            now = now or now_utc()
            session_id = session_id_for(class_id, now)
            end_time = now + timedelta(minutes=duration) if duration > 0 else None

            opened = self._sessions.open_session(
                class_id=class_id,
                session_id=session_id,
                start_time=now,
                end_time=end_time,
                duration_minutes=duration,
            )
            if not opened:
                raise SessionStateViolation("A session is already active for this class")

            # leftovers of an earlier session
            self._pending.clear(class_id)

            cls = self._classes.get_class(class_id)
            self._status.publish(cls)
            logger.info("Session %s started by %s (duration=%s min)", session_id, actor.user_id, duration)
            return cls

    def check_in(
        self,
        student: User,
        class_id: str,
        sample: LocationSample,
        *,
        device_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CheckInResult:
        if student.is_admin:
            raise ValidationError("Administrators do not check in")

        with self._locks.hold(class_id):
            cls = self._classes.get_class(class_id)
            if not cls.is_active or not cls.current_session_id:
                raise SessionStateViolation("No active session for this class")
            if student.user_id not in cls.students:
                raise AuthorizationError("You are not enrolled in this class")
            if student.device_id is not None and device_id != student.device_id:
                logger.warning("Check-in from unbound device rejected for %s", student.user_id)
                raise DeviceMismatchError("This account is registered to a different device")

            settings = self._geofence.load_settings()
            verdict = self._geofence.verify(sample, settings)
            if not verdict.within_campus:
                logger.info(
                    "Check-in refused for %s: %.1fm from campus (limit %.0fm)",
                    student.user_id,
                    verdict.distance_meters,
                    settings.max_radius_meters,
                )
                return CheckInResult(
                    accepted=False,
                    verdict=verdict,
                    message=(
                        f"You are {verdict.distance_meters:.0f}m from campus. "
                        f"Check-in is allowed within {settings.max_radius_meters:.0f}m."
                    ),
                )

            now = now or now_utc()
            record = AttendanceRecord(
                user_id=student.user_id,
                user_email=student.email,
                user_name=student.name,
                roll_number=student.roll_number,
                class_id=class_id,
                session_id=cls.current_session_id,
                timestamp=now,
                date=iso_date(now),
                verified=True,
                location=sample,
            )
            self._records.upsert(record)
            self._pending.put(
                PendingCheckIn(
                    user_id=student.user_id,
                    email=student.email,
                    name=student.name,
                    roll_number=student.roll_number,
                    timestamp_epoch_ms=epoch_ms(now),
                    date=record.date,
                    class_id=class_id,
                    session_id=cls.current_session_id,
                    location=sample,
                )
            )
            logger.info("Check-in accepted for %s in session %s", student.user_id, cls.current_session_id)
            return CheckInResult(accepted=True, verdict=verdict, message="Attendance marked", record=record)

    def end_session(
        self,
        actor: User,
        class_id: str,
        *,
        granted: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> SessionSummary:
        with self._locks.hold(class_id):
            cls = self._classes.require_manage(actor, class_id, granted)
            return self._end(cls, now or now_utc())

    def _end(self, cls: Class, now: datetime) -> SessionSummary:
        if not cls.is_active or not cls.current_session_id:
            raise SessionStateViolation("No active session for this class")
        session_id = cls.current_session_id

        pending = [p for p in self._pending.list(cls.class_id) if p.session_id == session_id]
        present_ids = {p.user_id for p in pending}

        batch: List[AttendanceRecord] = [
            AttendanceRecord(
                user_id=p.user_id,
                user_email=p.email,
                user_name=p.name,
                roll_number=p.roll_number,
                class_id=cls.class_id,
                session_id=session_id,
                timestamp=from_epoch_ms(p.timestamp_epoch_ms) if p.timestamp_epoch_ms else now,
                date=p.date or iso_date(now),
                verified=True,
                location=p.location,
            )
            for p in pending
        ]

        absent_ids = sorted(cls.students - present_ids)
        profiles: Dict[str, User] = {u.user_id: u for u in self._users.get_many(absent_ids)}
        for student_id in absent_ids:
            user = profiles.get(student_id)
            batch.append(
                AttendanceRecord(
                    user_id=student_id,
                    user_email=user.email if user else "",
                    user_name=user.name if user else "",
                    roll_number=user.roll_number if user else "",
                    class_id=cls.class_id,
                    session_id=session_id,
                    timestamp=now,
                    date=iso_date(now),
                    verified=False,
                    automarked=True,
                )
            )

        closed = self._sessions.close_session(
            class_id=cls.class_id,
            session_id=session_id,
            end_time=now,
            records=batch,
        )
        if not closed:
            raise SessionStateViolation("The session was already closed")

        # only after the commit
        self._pending.clear(cls.class_id)
        self._status.publish(self._classes.get_class(cls.class_id))

        summary = self._summarize(cls.class_id, session_id)
        logger.info(
            "Session %s ended: %s present, %s absent, %s total",
            session_id,
            summary.present,
            summary.absent,
            summary.total,
        )
        return summary

    def _summarize(self, class_id: str, session_id: str) -> SessionSummary:
        records = self._records.list_for_session(class_id, session_id)
        present = sum(1 for r in records if r.verified)
        return SessionSummary(
            class_id=class_id,
            session_id=session_id,
            present=present,
            absent=len(records) - present,
            total=len(records),
        )

    def close_expired_sessions(self, now: Optional[datetime] = None) -> List[SessionSummary]:
        now = now or now_utc()
        summaries = []
        for class_id in self._sessions.list_expired(now):
            with self._locks.hold(class_id):
                cls = self._classes.get_class(class_id)
                if not cls.is_active or cls.end_time is None or cls.end_time > now:
                    continue
                try:
                    summaries.append(self._end(cls, now))
                except SessionStateViolation:
                    logger.info("Session of class %s was closed concurrently", class_id)
        return summaries

    # --- session data ---

    def delete_session(
        self,
        actor: User,
        class_id: str,
        session_id: str,
        *,
        granted: Iterable[str] = (),
    ) -> int:
        with self._locks.hold(class_id):
            cls = self._classes.require_manage(actor, class_id, granted)
            if cls.is_active:
                raise SessionStateViolation("End the active session before deleting session data")
            deleted = self._records.delete_for_session(class_id, session_id)
            logger.info("Deleted %s records of session %s by %s", deleted, session_id, actor.user_id)
            return deleted

    def toggle_record_status(
        self,
        actor: User,
        record_id: str,
        *,
        granted: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        record = self._records.get(record_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        self._classes.require_manage(actor, record.class_id, granted)

        self._records.set_verified(record_id, not record.verified, updated_at=now or now_utc())
        updated = self._records.get(record_id)
        if not updated:
            raise NotFoundError("Attendance record not found")
        logger.info("Record %s set to verified=%s by %s", record_id, updated.verified, actor.user_id)
        return updated

    def add_manual_record(
        self,
        actor: User,
        class_id: str,
        student_id: str,
        session_id: Optional[str] = None,
        *,
        granted: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        with self._locks.hold(class_id):
            cls = self._classes.require_manage(actor, class_id, granted)
            session_id = session_id or cls.current_session_id or cls.last_session_id
            if not session_id:
                raise ValidationError("This class has no session yet")

            student = self._users.get_by_id(student_id)
            if not student:
                raise NotFoundError("Student not found")

            now = now or now_utc()
            record = AttendanceRecord(
                user_id=student.user_id,
                user_email=student.email,
                user_name=student.name,
                roll_number=student.roll_number,
                class_id=class_id,
                session_id=session_id,
                timestamp=now,
                date=iso_date(now),
                verified=True,
                manually_added=True,
            )
            if not self._records.create_if_absent(record):
                raise ValidationError("This student already has a record for the session")
            logger.info("Manual record %s added by %s", record.record_id, actor.user_id)
            return record

    # --- reads and live views ---

    def live_snapshot(self, class_id: str) -> LiveSnapshot:
        cls = self._classes.get_class(class_id)
        check_ins = tuple(
            p for p in self._pending.list(class_id) if cls.is_active and p.session_id == cls.current_session_id
        )
        return LiveSnapshot(
            class_id=class_id,
            is_active=cls.is_active,
            session_id=cls.current_session_id,
            enrolled=len(cls.students),
            check_ins=check_ins,
        )

    def watch_live(self, class_id: str, callback: Callable[[List[PendingCheckIn]], None]) -> Subscription:
        self._classes.get_class(class_id)
        return self._pending.subscribe(class_id, callback)

    def watch_class_status(self, class_id: str, callback: Callable[[Optional[dict]], None]) -> Subscription:
        cls = self._classes.get_class(class_id)
        if self._status.get(class_id) is None:
            self._status.publish(cls)
        return self._status.subscribe(class_id, callback)

    def session_history(self, class_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> List[SessionHistory]:
        self._classes.get_class(class_id)
        grouped: "OrderedDict[str, List[AttendanceRecord]]" = OrderedDict()
        for r in self._records.list_for_class(class_id):
            grouped.setdefault(r.session_id, []).append(r)

        history = []
        for session_id, records in grouped.items():
            present = sum(1 for r in records if r.verified)
            started_at = session_started_at(session_id) or min(r.timestamp for r in records)
            history.append(
                SessionHistory(
                    session_id=session_id,
                    class_id=class_id,
                    date=iso_date(started_at),
                    attendance_count=len(records),
                    present_count=present,
                    absent_count=len(records) - present,
                    started_at=started_at,
                )
            )
        history.sort(key=lambda h: h.started_at, reverse=True)
        return history[: max(int(limit), 0)]

    def records_for_session(self, class_id: str, session_id: str) -> Sequence[AttendanceRecord]:
        return self._records.list_for_session(class_id, session_id)

    def records_for_user(self, user_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        return self._records.list_for_user(user_id, limit)
