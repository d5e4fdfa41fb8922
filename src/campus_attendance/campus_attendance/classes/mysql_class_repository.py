from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..core.enums import EnrollmentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_utc, db_cursor, fetchall, fetchone, to_db_datetime
from .model import Class, Enrollment
from .repository import ClassRepository

_COLUMNS = """
    class_id, name, description, created_by, creator_email, created_at, password_hash,
    is_active, current_session_id, last_session_id, start_time, end_time, duration_minutes
"""


def _row_to_class(r: dict, students: Set[str], pending: Set[str]) -> Class:
    return Class(
        class_id=str(r["class_id"]),
        name=r["name"],
        description=r.get("description") or "",
        created_by=str(r["created_by"]),
        creator_email=r.get("creator_email") or "",
        created_at=as_utc(r["created_at"]),
        password_hash=r.get("password_hash") or None,
        students=frozenset(students),
        pending_students=frozenset(pending),
        is_active=bool(r.get("is_active")),
        current_session_id=r.get("current_session_id"),
        last_session_id=r.get("last_session_id"),
        start_time=as_utc(r.get("start_time")),
        end_time=as_utc(r.get("end_time")),
        duration_minutes=int(r.get("duration_minutes") or 0),
    )


def _rosters(cur, class_ids: List[str]) -> Dict[str, Tuple[Set[str], Set[str]]]:
    out: Dict[str, Tuple[Set[str], Set[str]]] = {cid: (set(), set()) for cid in class_ids}
    if not class_ids:
        return out
    placeholders = ", ".join(["%s"] * len(class_ids))
    cur.execute(
        f"SELECT student_id, class_id, status FROM enrollments WHERE class_id IN ({placeholders})",
        tuple(class_ids),
    )
    for r in fetchall(cur):
        approved, pending = out[str(r["class_id"])]
        if r["status"] == EnrollmentStatus.APPROVED.value:
            approved.add(str(r["student_id"]))
        else:
            pending.add(str(r["student_id"]))
    return out


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_class(
        self,
        *,
        class_id: str,
        name: str,
        description: str,
        created_by: str,
        creator_email: str,
        created_at: datetime,
        password_hash: Optional[str],
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO classes (class_id, name, description, created_by, creator_email, created_at, password_hash)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (class_id, name, description, created_by, creator_email, to_db_datetime(created_at), password_hash),
            )

    def get_by_id(self, class_id: str) -> Optional[Class]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM classes WHERE class_id=%s", (class_id,))
            r = fetchone(cur)
            if not r:
                return None
            students, pending = _rosters(cur, [class_id])[class_id]
            return _row_to_class(r, students, pending)

    def list_all(self) -> Sequence[Class]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM classes ORDER BY created_at DESC, name")
            rows = fetchall(cur)
            rosters = _rosters(cur, [str(r["class_id"]) for r in rows])
            return [_row_to_class(r, *rosters[str(r["class_id"])]) for r in rows]

    def delete_inactive(self, class_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM classes WHERE class_id=%s AND is_active=0", (class_id,))
            if cur.rowcount == 0:
                return False
            cur.execute("DELETE FROM attendance_records WHERE class_id=%s", (class_id,))
            return True

    def get_enrollment(self, student_id: str) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id, class_id, status, requested_at FROM enrollments WHERE student_id=%s",
                (student_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Enrollment(
                student_id=str(r["student_id"]),
                class_id=str(r["class_id"]),
                status=EnrollmentStatus(r["status"]),
                requested_at=as_utc(r["requested_at"]),
            )

    def add_enrollment(
        self, *, student_id: str, class_id: str, status: EnrollmentStatus, requested_at: datetime
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            # student_id is the primary key: a second enrollment is ignored.
            cur.execute(
                "INSERT IGNORE INTO enrollments (student_id, class_id, status, requested_at) VALUES (%s, %s, %s, %s)",
                (student_id, class_id, status.value, to_db_datetime(requested_at)),
            )
            return cur.rowcount > 0

    def set_enrollment_status(
        self, *, student_id: str, class_id: str, status: EnrollmentStatus, decided_at: datetime
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE enrollments SET status=%s, decided_at=%s WHERE student_id=%s AND class_id=%s",
                (status.value, to_db_datetime(decided_at), student_id, class_id),
            )
            return cur.rowcount > 0

    def remove_enrollment(self, *, student_id: str, class_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM enrollments WHERE student_id=%s AND class_id=%s",
                (student_id, class_id),
            )
            return cur.rowcount > 0
