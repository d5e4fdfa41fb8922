from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional

from ..common.datetime_utils import to_iso
from ..core.enums import EnrollmentStatus


@dataclass(frozen=True)
class Class:
    """A class and its session state.

    current_session_id is set exactly while is_active is true. The student
    sets are derived from the enrollments table when the class is loaded.
    """

    class_id: str
    name: str
    description: str
    created_by: str
    creator_email: str
    created_at: datetime
    password_hash: Optional[str] = None
    students: FrozenSet[str] = field(default_factory=frozenset)
    pending_students: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = False
    current_session_id: Optional[str] = None
    last_session_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_minutes: int = 0

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def is_owned_by(self, user_id: str) -> bool:
        return self.created_by == user_id

    def to_dict(self) -> dict:
        return {
            "classId": self.class_id,
            "name": self.name,
            "description": self.description,
            "createdBy": self.created_by,
            "creatorEmail": self.creator_email,
            "createdAt": to_iso(self.created_at),
            "hasPassword": self.has_password,
            "students": sorted(self.students),
            "pendingStudents": sorted(self.pending_students),
            "isActive": self.is_active,
            "currentSessionId": self.current_session_id,
            "lastSessionId": self.last_session_id,
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
            "duration": self.duration_minutes,
        }


@dataclass(frozen=True)
class Enrollment:
    student_id: str
    class_id: str
    status: EnrollmentStatus
    requested_at: datetime
