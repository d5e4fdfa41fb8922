from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

from ..common.datetime_utils import epoch_ms, from_epoch_ms, to_iso
from ..geofence.model import GeoVerdict, LocationSample


def record_id_for(user_id: str, class_id: str, session_id: str) -> str:
    """Composite key: one record per student per session."""
    return f"{user_id}_{class_id}_{session_id}"


def session_id_for(class_id: str, started_at: datetime) -> str:
    return f"{class_id}_{epoch_ms(started_at)}"


def session_started_at(session_id: str) -> Optional[datetime]:
    _, _, suffix = session_id.rpartition("_")
    if not suffix.isdigit():
        return None
    return from_epoch_ms(int(suffix))


@dataclass(frozen=True)
class AttendanceRecord:
    """Durable attendance fact for (student, class, session).

    verified=True means present. automarked records are absences written by
    the session close sweep.
    """

    user_id: str
    user_email: str
    user_name: str
    roll_number: str
    class_id: str
    session_id: str
    timestamp: datetime
    date: str
    verified: bool
    location: Optional[LocationSample] = None
    automarked: bool = False
    manually_added: bool = False
    manually_updated: bool = False
    manually_updated_at: Optional[datetime] = None

    @property
    def record_id(self) -> str:
        return record_id_for(self.user_id, self.class_id, self.session_id)

    def to_dict(self) -> dict:
        return {
            "recordId": self.record_id,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "rollNumber": self.roll_number,
            "classId": self.class_id,
            "sessionId": self.session_id,
            "timestamp": to_iso(self.timestamp),
            "date": self.date,
            "verified": self.verified,
            "location": self.location.to_dict() if self.location else None,
            "automarked": self.automarked,
            "manuallyAdded": self.manually_added,
            "manuallyUpdated": self.manually_updated,
            "manuallyUpdatedAt": to_iso(self.manually_updated_at),
        }


@dataclass(frozen=True)
class PendingCheckIn:
    """Live-dashboard projection of a successful check-in, keyed (class_id, user_id)."""

    user_id: str
    email: str
    name: str
    roll_number: str
    timestamp_epoch_ms: int
    date: str
    class_id: str
    session_id: str
    location: Optional[LocationSample] = None

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "email": self.email,
            "name": self.name,
            "rollNumber": self.roll_number,
            "timestamp": self.timestamp_epoch_ms,
            "date": self.date,
            "classId": self.class_id,
            "sessionId": self.session_id,
            "location": self.location.to_dict() if self.location else None,
        }

    @staticmethod
    def from_dict(user_id: str, data: Mapping[str, Any]) -> "PendingCheckIn":
        loc = data.get("location") or None
        ts = int(data.get("timestamp") or 0)
        return PendingCheckIn(
            user_id=str(data.get("userId") or user_id),
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            roll_number=str(data.get("rollNumber") or ""),
            timestamp_epoch_ms=ts,
            date=str(data.get("date") or ""),
            class_id=str(data.get("classId") or ""),
            session_id=str(data.get("sessionId") or ""),
            location=LocationSample(
                latitude=float(loc["latitude"]),
                longitude=float(loc["longitude"]),
                accuracy_meters=float(loc.get("accuracy") or 0.0),
                captured_at_epoch_ms=ts,
            )
            if loc
            else None,
        )


@dataclass(frozen=True)
class CheckInResult:
    """Outcome of a check-in. Out of range is a normal negative result."""

    accepted: bool
    verdict: GeoVerdict
    message: str
    record: Optional[AttendanceRecord] = None

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "message": self.message,
            "verdict": self.verdict.to_dict(),
            "record": self.record.to_dict() if self.record else None,
        }


@dataclass(frozen=True)
class SessionSummary:
    class_id: str
    session_id: str
    present: int
    absent: int
    total: int

    def to_dict(self) -> dict:
        return {
            "classId": self.class_id,
            "sessionId": self.session_id,
            "present": self.present,
            "absent": self.absent,
            "total": self.total,
        }


@dataclass(frozen=True)
class SessionHistory:
    session_id: str
    class_id: str
    date: str
    attendance_count: int
    present_count: int
    absent_count: int
    started_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "classId": self.class_id,
            "date": self.date,
            "attendanceCount": self.attendance_count,
            "presentCount": self.present_count,
            "absentCount": self.absent_count,
            "startedAt": to_iso(self.started_at),
        }


@dataclass(frozen=True)
class LiveSnapshot:
    """Current session view for the admin dashboard."""

    class_id: str
    is_active: bool
    session_id: Optional[str]
    enrolled: int
    check_ins: Tuple[PendingCheckIn, ...]

    def to_dict(self) -> dict:
        return {
            "classId": self.class_id,
            "isActive": self.is_active,
            "sessionId": self.session_id,
            "enrolled": self.enrolled,
            "checkIns": [p.to_dict() for p in self.check_ins],
        }
