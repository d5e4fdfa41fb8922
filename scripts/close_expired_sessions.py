"""End every session whose scheduled end time has passed.

Meant for cron, e.g. once a minute:
    * * * * * cd /srv/campus-attendance && python scripts/close_expired_sessions.py
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.campus_attendance.campus_attendance.container import build_container


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper())

    container = build_container(db_config=dict(settings.DB_CONFIG))
    summaries = container.session_service.close_expired_sessions()
    for s in summaries:
        print(f"Closed {s.session_id}: {s.present} present, {s.absent} absent ({s.total} total)")
    if not summaries:
        print("OK: no expired sessions")


if __name__ == "__main__":
    main()
