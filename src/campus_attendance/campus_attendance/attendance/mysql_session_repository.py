from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, to_db_datetime
from .model import AttendanceRecord
from .mysql_attendance_repository import INSERT_IGNORE_RECORD, record_params
from .repository import SessionRepository


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def open_session(
        self,
        *,
        class_id: str,
        session_id: str,
        start_time: datetime,
        end_time: Optional[datetime],
        duration_minutes: int,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE classes
                SET is_active=1, current_session_id=%s, start_time=%s, end_time=%s, duration_minutes=%s
                WHERE class_id=%s AND is_active=0
                """,
                (session_id, to_db_datetime(start_time), to_db_datetime(end_time), int(duration_minutes), class_id),
            )
            return cur.rowcount > 0

    def close_session(
        self,
        *,
        class_id: str,
        session_id: str,
        end_time: datetime,
        records: Sequence[AttendanceRecord],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            # The guarded flip runs first so a lost race writes nothing.
            cur.execute(
                """
                UPDATE classes
                SET is_active=0, end_time=%s, last_session_id=current_session_id, current_session_id=NULL
                WHERE class_id=%s AND is_active=1 AND current_session_id=%s
                """,
                (to_db_datetime(end_time), class_id, session_id),
            )
            if cur.rowcount == 0:
                return False
            if records:
                cur.executemany(INSERT_IGNORE_RECORD, [record_params(r) for r in records])
            return True

    def list_expired(self, now: datetime) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id FROM classes
                WHERE is_active=1 AND end_time IS NOT NULL AND end_time <= %s
                ORDER BY end_time
                """,
                (to_db_datetime(now),),
            )
            return [str(r["class_id"]) for r in fetchall(cur)]
