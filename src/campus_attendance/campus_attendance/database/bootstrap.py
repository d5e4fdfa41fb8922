from __future__ import annotations

import json
import re
import uuid
from pathlib import Path
from typing import Iterable

from werkzeug.security import generate_password_hash

from ..core.constants import (
    DEFAULT_CAMPUS_LATITUDE,
    DEFAULT_CAMPUS_LONGITUDE,
    DEFAULT_MAX_RADIUS_METERS,
    GEOLOCATION_SETTINGS_DOC,
)
from .connection import DatabaseConnection, DBConfig


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema/seed files (handles ';' inside quotes and -- comments).
    buf: list[str] = []
    in_single = False
    in_double = False
    in_comment = False
    escape = False
    prev = ""

    for ch in sql:
        if in_comment:
            if ch == "\n":
                in_comment = False
                buf.append(ch)
            prev = ch
            continue

        if escape:
            buf.append(ch)
            escape = False
            prev = ch
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            prev = ch
            continue

        if ch == "-" and prev == "-" and not in_single and not in_double:
            buf.pop()
            in_comment = True
            prev = ""
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            prev = ch
            if stmt:
                yield stmt
            continue

        buf.append(ch)
        prev = ch

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _exec_sql(cur, sql: str) -> None:
    for stmt in _iter_sql_statements(sql):
        cur.execute(stmt)


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = DatabaseConnection(target).connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)

    schema_path = Path(schema_path)
    sql = _strip_create_db_and_use(schema_path.read_text(encoding="utf-8"))

    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        _exec_sql(cur, sql)
        conn.commit()
    finally:
        conn.close()


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    seed_path = Path(seed_path)
    sql = _strip_create_db_and_use(seed_path.read_text(encoding="utf-8"))

    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        _exec_sql(cur, sql)
        conn.commit()
    finally:
        conn.close()


def ensure_demo_users(db_config: dict) -> None:
    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor(dictionary=True)

        def upsert_user(email: str, display_name: str, password: str, *, roll_number: str = "", is_admin: bool = False) -> None:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            existing = cur.fetchone()
            if existing:
                cur.execute(
                    """
                    UPDATE users
                    SET display_name=%s, password_hash=%s, roll_number=%s, is_admin=%s, is_active=1
                    WHERE email=%s
                    """,
                    (display_name, password_hash, roll_number, int(is_admin), email),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (user_id, email, display_name, roll_number, password_hash, is_admin)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (uuid.uuid4().hex, email, display_name, roll_number, password_hash, int(is_admin)),
                )

        upsert_user("admin@campus.edu", "Admin Demo", "admin123", is_admin=True)
        upsert_user("student1@campus.edu", "Student One", "student123", roll_number="R001")
        upsert_user("student2@campus.edu", "Student Two", "student123", roll_number="R002")

        # Only insert defaults; never clobber settings an admin already saved.
        cur.execute(
            "INSERT IGNORE INTO settings (name, data) VALUES (%s, %s)",
            (
                GEOLOCATION_SETTINGS_DOC,
                json.dumps(
                    {
                        "latitude": DEFAULT_CAMPUS_LATITUDE,
                        "longitude": DEFAULT_CAMPUS_LONGITUDE,
                        "maxDistance": DEFAULT_MAX_RADIUS_METERS,
                    }
                ),
            ),
        )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
