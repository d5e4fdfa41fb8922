from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    """Durable attendance records keyed by record_id_for(user, class, session)."""

    def upsert(self, record: AttendanceRecord) -> None:
        """Insert or overwrite; the latest write wins."""
        raise NotImplementedError

    def create_if_absent(self, record: AttendanceRecord) -> bool:
        """Insert unless a record with the same key exists. True when inserted."""
        raise NotImplementedError

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, class_id: str, session_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_class(self, class_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_user(self, user_id: str, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def delete_for_session(self, class_id: str, session_id: str) -> int:
        raise NotImplementedError

    def set_verified(self, record_id: str, verified: bool, *, updated_at: datetime) -> bool:
        """Admin override: also marks the record as manually updated."""
        raise NotImplementedError


class SessionRepository(Protocol):
    """Session state columns of a class, written with conditional updates."""

    def open_session(
        self,
        *,
        class_id: str,
        session_id: str,
        start_time: datetime,
        end_time: Optional[datetime],
        duration_minutes: int,
    ) -> bool:
        """Flip Inactive -> Active. False when the class is already active."""
        raise NotImplementedError

    def close_session(
        self,
        *,
        class_id: str,
        session_id: str,
        end_time: datetime,
        records: Sequence[AttendanceRecord],
    ) -> bool:
        """Write records (create-if-absent) and flip Active -> Inactive atomically.

        False, with nothing written, when session_id is no longer the class's
        current session.
        """
        raise NotImplementedError

    def list_expired(self, now: datetime) -> Sequence[str]:
        """Ids of active classes whose end_time has passed."""
        raise NotImplementedError
