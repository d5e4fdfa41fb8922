from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence, Tuple

from ..common.datetime_utils import epoch_ms
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_utc, db_cursor, fetchall, fetchone, to_db_datetime
from ..geofence.model import LocationSample
from .model import AttendanceRecord
from .repository import AttendanceRepository

_SELECT = """
    SELECT record_id, user_id, user_email, user_name, roll_number, class_id, session_id,
           recorded_at, record_date, verified, latitude, longitude, accuracy_meters,
           automarked, manually_added, manually_updated, manually_updated_at
    FROM attendance_records
"""

_INSERT_COLUMNS = """
    (record_id, user_id, user_email, user_name, roll_number, class_id, session_id,
     recorded_at, record_date, verified, latitude, longitude, accuracy_meters,
     automarked, manually_added, manually_updated, manually_updated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""

INSERT_IGNORE_RECORD = "INSERT IGNORE INTO attendance_records " + _INSERT_COLUMNS


def record_params(record: AttendanceRecord) -> Tuple:
    loc = record.location
    return (
        record.record_id,
        record.user_id,
        record.user_email,
        record.user_name,
        record.roll_number,
        record.class_id,
        record.session_id,
        to_db_datetime(record.timestamp),
        record.date,
        int(record.verified),
        loc.latitude if loc else None,
        loc.longitude if loc else None,
        loc.accuracy_meters if loc else None,
        int(record.automarked),
        int(record.manually_added),
        int(record.manually_updated),
        to_db_datetime(record.manually_updated_at),
    )


def _row_to_record(r: dict) -> AttendanceRecord:
    recorded_at = as_utc(r["recorded_at"])
    record_date = r["record_date"]
    location = None
    if r.get("latitude") is not None and r.get("longitude") is not None:
        location = LocationSample(
            latitude=float(r["latitude"]),
            longitude=float(r["longitude"]),
            accuracy_meters=float(r.get("accuracy_meters") or 0.0),
            captured_at_epoch_ms=epoch_ms(recorded_at),
        )
    return AttendanceRecord(
        user_id=str(r["user_id"]),
        user_email=r.get("user_email") or "",
        user_name=r.get("user_name") or "",
        roll_number=r.get("roll_number") or "",
        class_id=str(r["class_id"]),
        session_id=str(r["session_id"]),
        timestamp=recorded_at,
        date=record_date.isoformat() if isinstance(record_date, date) else str(record_date),
        verified=bool(r.get("verified")),
        location=location,
        automarked=bool(r.get("automarked")),
        manually_added=bool(r.get("manually_added")),
        manually_updated=bool(r.get("manually_updated")),
        manually_updated_at=as_utc(r.get("manually_updated_at")),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def upsert(self, record: AttendanceRecord) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO attendance_records "
                + _INSERT_COLUMNS
                + """
                ON DUPLICATE KEY UPDATE
                    user_email=VALUES(user_email), user_name=VALUES(user_name),
                    roll_number=VALUES(roll_number), recorded_at=VALUES(recorded_at),
                    record_date=VALUES(record_date), verified=VALUES(verified),
                    latitude=VALUES(latitude), longitude=VALUES(longitude),
                    accuracy_meters=VALUES(accuracy_meters), automarked=VALUES(automarked)
                """,
                record_params(record),
            )

    def create_if_absent(self, record: AttendanceRecord) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(INSERT_IGNORE_RECORD, record_params(record))
            return cur.rowcount > 0

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE record_id=%s", (record_id,))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def list_for_session(self, class_id: str, session_id: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE class_id=%s AND session_id=%s ORDER BY roll_number, user_email",
                (class_id, session_id),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_for_class(self, class_id: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE class_id=%s ORDER BY recorded_at DESC", (class_id,))
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_for_user(self, user_id: str, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE user_id=%s ORDER BY recorded_at DESC LIMIT %s",
                (user_id, int(limit)),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def delete_for_session(self, class_id: str, session_id: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM attendance_records WHERE class_id=%s AND session_id=%s",
                (class_id, session_id),
            )
            return int(cur.rowcount)

    def set_verified(self, record_id: str, verified: bool, *, updated_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET verified=%s, manually_updated=1, manually_updated_at=%s
                WHERE record_id=%s
                """,
                (int(verified), to_db_datetime(updated_at), record_id),
            )
            return cur.rowcount > 0
