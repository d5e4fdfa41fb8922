from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, load_json
from .settings import SettingsRepository


class MySQLSettingsRepository(SettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_document(self, name: str) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT data FROM settings WHERE name=%s", (name,))
            r = fetchone(cur)
            if not r:
                return None
            return load_json(r["data"])

    def put_document(self, name: str, data: Mapping[str, Any]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO settings (name, data) VALUES (%s, %s)
                ON DUPLICATE KEY UPDATE data=VALUES(data)
                """,
                (name, json.dumps(dict(data))),
            )
