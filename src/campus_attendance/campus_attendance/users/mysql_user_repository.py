from __future__ import annotations

import uuid
from typing import Any, Iterable, Optional, Sequence

from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import MUTABLE_USER_FIELDS, UserRepository

_COLUMNS = "user_id, email, display_name, roll_number, password_hash, is_admin, device_id, selected_class_id, is_active"


def _row_to_user(r: dict) -> User:
    return User(
        user_id=str(r["user_id"]),
        email=r["email"],
        display_name=r.get("display_name") or "",
        roll_number=r.get("roll_number") or "",
        password_hash=r["password_hash"],
        is_admin=bool(r.get("is_admin")),
        device_id=r.get("device_id"),
        selected_class_id=r.get("selected_class_id"),
        is_active=bool(r.get("is_active", 1)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (user_id,))
            r = fetchone(cur)
            return _row_to_user(r) if r else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE email=%s", (email.strip().lower(),))
            r = fetchone(cur)
            return _row_to_user(r) if r else None

    def get_many(self, user_ids: Iterable[str]) -> Sequence[User]:
        ids = sorted(set(user_ids))
        if not ids:
            return []
        placeholders = ", ".join(["%s"] * len(ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM users WHERE user_id IN ({placeholders}) ORDER BY roll_number, email",
                tuple(ids),
            )
            return [_row_to_user(r) for r in fetchall(cur)]

    def create_user(
        self,
        *,
        email: str,
        display_name: str,
        roll_number: str,
        password_hash: str,
        is_admin: bool = False,
    ) -> str:
        user_id = uuid.uuid4().hex
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users (user_id, email, display_name, roll_number, password_hash, is_admin)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (user_id, email.strip().lower(), display_name, roll_number, password_hash, int(is_admin)),
            )
        return user_id

    def set_user_field(self, user_id: str, field: str, value: Any) -> bool:
        if field not in MUTABLE_USER_FIELDS:
            raise ValidationError(f"Field {field!r} cannot be updated")
        if isinstance(value, bool):
            value = int(value)
        with db_cursor(self._conn_factory) as (_, cur):
            # field is whitelisted above, safe to interpolate.
            cur.execute(f"UPDATE users SET {field}=%s WHERE user_id=%s", (value, user_id))
            return cur.rowcount > 0
