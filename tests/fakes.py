from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

from werkzeug.security import generate_password_hash

from src.campus_attendance.campus_attendance.attendance.model import AttendanceRecord
from src.campus_attendance.campus_attendance.classes.model import Class, Enrollment
from src.campus_attendance.campus_attendance.container import Container, assemble_container
from src.campus_attendance.campus_attendance.core.enums import EnrollmentStatus
from src.campus_attendance.campus_attendance.core.exceptions import StoreWriteFailure, ValidationError
from src.campus_attendance.campus_attendance.realtime.memory_store import InMemoryRealtimeStore
from src.campus_attendance.campus_attendance.users.model import User
from src.campus_attendance.campus_attendance.users.repository import MUTABLE_USER_FIELDS

CAMPUS = (22.6288, 88.4682)


class InMemoryUsers:
    def __init__(self):
        self.by_id: Dict[str, User] = {}
        self._seq = 0

    def add(self, user: User) -> User:
        self.by_id[user.user_id] = user
        return user

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self.by_id.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.by_id.values() if u.email == email), None)

    def get_many(self, user_ids: Iterable[str]) -> Sequence[User]:
        return [self.by_id[i] for i in sorted(set(user_ids)) if i in self.by_id]

    def create_user(self, *, email, display_name, roll_number, password_hash, is_admin=False) -> str:
        self._seq += 1
        user_id = f"new{self._seq}"
        self.add(
            User(
                user_id=user_id,
                email=email,
                display_name=display_name,
                roll_number=roll_number,
                password_hash=password_hash,
                is_admin=is_admin,
            )
        )
        return user_id

    def set_user_field(self, user_id: str, field_name: str, value: Any) -> bool:
        if field_name not in MUTABLE_USER_FIELDS:
            raise ValidationError(f"Field {field_name!r} cannot be updated")
        user = self.by_id.get(user_id)
        if not user:
            return False
        self.by_id[user_id] = replace(user, **{field_name: value})
        return True


class InMemoryClasses:
    def __init__(self):
        self.rows: Dict[str, Class] = {}
        self.enrollments: Dict[str, Enrollment] = {}
        self.records: Optional["InMemoryAttendance"] = None

    def create_class(self, *, class_id, name, description, created_by, creator_email, created_at, password_hash) -> None:
        self.rows[class_id] = Class(
            class_id=class_id,
            name=name,
            description=description,
            created_by=created_by,
            creator_email=creator_email,
            created_at=created_at,
            password_hash=password_hash,
        )

    def _with_roster(self, cls: Class) -> Class:
        mine = [e for e in self.enrollments.values() if e.class_id == cls.class_id]
        return replace(
            cls,
            students=frozenset(e.student_id for e in mine if e.status == EnrollmentStatus.APPROVED),
            pending_students=frozenset(e.student_id for e in mine if e.status == EnrollmentStatus.PENDING),
        )

    def get_by_id(self, class_id: str) -> Optional[Class]:
        cls = self.rows.get(class_id)
        return self._with_roster(cls) if cls else None

    def list_all(self) -> Sequence[Class]:
        return [self._with_roster(c) for c in self.rows.values()]

    def delete_inactive(self, class_id: str) -> bool:
        cls = self.rows.get(class_id)
        if not cls or cls.is_active:
            return False
        del self.rows[class_id]
        for sid in [s for s, e in self.enrollments.items() if e.class_id == class_id]:
            del self.enrollments[sid]
        if self.records is not None:
            self.records.delete_for_class(class_id)
        return True

    def get_enrollment(self, student_id: str) -> Optional[Enrollment]:
        return self.enrollments.get(student_id)

    def add_enrollment(self, *, student_id, class_id, status, requested_at) -> bool:
        if student_id in self.enrollments:
            return False
        self.enrollments[student_id] = Enrollment(student_id, class_id, status, requested_at)
        return True

    def set_enrollment_status(self, *, student_id, class_id, status, decided_at) -> bool:
        e = self.enrollments.get(student_id)
        if not e or e.class_id != class_id:
            return False
        self.enrollments[student_id] = replace(e, status=status)
        return True

    def remove_enrollment(self, *, student_id, class_id) -> bool:
        e = self.enrollments.get(student_id)
        if not e or e.class_id != class_id:
            return False
        del self.enrollments[student_id]
        return True


class InMemoryAttendance:
    def __init__(self):
        self.by_id: Dict[str, AttendanceRecord] = {}

    def upsert(self, record: AttendanceRecord) -> None:
        self.by_id[record.record_id] = record

    def create_if_absent(self, record: AttendanceRecord) -> bool:
        if record.record_id in self.by_id:
            return False
        self.by_id[record.record_id] = record
        return True

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        return self.by_id.get(record_id)

    def list_for_session(self, class_id: str, session_id: str) -> Sequence[AttendanceRecord]:
        return [r for r in self.by_id.values() if r.class_id == class_id and r.session_id == session_id]

    def list_for_class(self, class_id: str) -> Sequence[AttendanceRecord]:
        return sorted((r for r in self.by_id.values() if r.class_id == class_id), key=lambda r: r.timestamp, reverse=True)

    def list_for_user(self, user_id: str, limit: int) -> Sequence[AttendanceRecord]:
        items = sorted((r for r in self.by_id.values() if r.user_id == user_id), key=lambda r: r.timestamp, reverse=True)
        return items[:limit]

    def delete_for_session(self, class_id: str, session_id: str) -> int:
        doomed = [k for k, r in self.by_id.items() if r.class_id == class_id and r.session_id == session_id]
        for k in doomed:
            del self.by_id[k]
        return len(doomed)

    def delete_for_class(self, class_id: str) -> None:
        for k in [k for k, r in self.by_id.items() if r.class_id == class_id]:
            del self.by_id[k]

    def set_verified(self, record_id: str, verified: bool, *, updated_at: datetime) -> bool:
        record = self.by_id.get(record_id)
        if not record:
            return False
        self.by_id[record_id] = replace(
            record, verified=verified, manually_updated=True, manually_updated_at=updated_at
        )
        return True


class InMemorySessions:
    """Session columns live on the class rows; records go to the attendance fake."""

    def __init__(self, classes: InMemoryClasses, records: InMemoryAttendance):
        self._classes = classes
        self._records = records
        self.fail_on_close = False

    def open_session(self, *, class_id, session_id, start_time, end_time, duration_minutes) -> bool:
        cls = self._classes.rows.get(class_id)
        if not cls or cls.is_active:
            return False
        self._classes.rows[class_id] = replace(
            cls,
            is_active=True,
            current_session_id=session_id,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
        )
        return True

    def close_session(self, *, class_id, session_id, end_time, records) -> bool:
        if self.fail_on_close:
            raise StoreWriteFailure("Database write failed")
        cls = self._classes.rows.get(class_id)
        if not cls or not cls.is_active or cls.current_session_id != session_id:
            return False
        for r in records:
            self._records.create_if_absent(r)
        self._classes.rows[class_id] = replace(
            cls,
            is_active=False,
            end_time=end_time,
            last_session_id=session_id,
            current_session_id=None,
        )
        return True

    def list_expired(self, now: datetime) -> Sequence[str]:
        return [
            c.class_id
            for c in self._classes.rows.values()
            if c.is_active and c.end_time is not None and c.end_time <= now
        ]


class InMemorySettings:
    def __init__(self, docs: Optional[Dict[str, dict]] = None):
        self.docs: Dict[str, dict] = dict(docs or {})

    def get_document(self, name: str) -> Optional[dict]:
        doc = self.docs.get(name)
        return dict(doc) if doc is not None else None

    def put_document(self, name: str, data) -> None:
        self.docs[name] = dict(data)


@dataclass
class World:
    """Fakes plus the container wired on top of them."""

    users: InMemoryUsers = field(default_factory=InMemoryUsers)
    classes: InMemoryClasses = field(default_factory=InMemoryClasses)
    records: InMemoryAttendance = field(default_factory=InMemoryAttendance)
    settings: InMemorySettings = field(default_factory=InMemorySettings)
    realtime: InMemoryRealtimeStore = field(default_factory=InMemoryRealtimeStore)
    sessions: Optional[InMemorySessions] = None
    container: Optional[Container] = None

    def __post_init__(self):
        self.classes.records = self.records
        self.sessions = InMemorySessions(self.classes, self.records)
        self.container = assemble_container(
            users_repo=self.users,
            classes_repo=self.classes,
            attendance_repo=self.records,
            sessions_repo=self.sessions,
            settings_repo=self.settings,
            realtime=self.realtime,
        )

    def add_user(
        self,
        user_id: str,
        *,
        is_admin: bool = False,
        password: str = "secret123",
        device_id: Optional[str] = None,
        roll_number: str = "",
    ) -> User:
        return self.users.add(
            User(
                user_id=user_id,
                email=f"{user_id}@campus.edu",
                display_name=user_id.title(),
                roll_number=roll_number,
                password_hash=generate_password_hash(password),
                is_admin=is_admin,
                device_id=device_id,
            )
        )

    def add_class(
        self,
        class_id: str,
        owner: User,
        *,
        created_at: datetime,
        students: Iterable[User] = (),
        password: Optional[str] = None,
    ) -> Class:
        self.classes.create_class(
            class_id=class_id,
            name=class_id.title(),
            description="",
            created_by=owner.user_id,
            creator_email=owner.email,
            created_at=created_at,
            password_hash=generate_password_hash(password) if password else None,
        )
        for s in students:
            self.classes.add_enrollment(
                student_id=s.user_id,
                class_id=class_id,
                status=EnrollmentStatus.APPROVED,
                requested_at=created_at,
            )
        return self.classes.get_by_id(class_id)
