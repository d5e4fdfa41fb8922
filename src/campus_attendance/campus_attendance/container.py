from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.live import ClassStatusFeed, PendingCheckInStore
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.mysql_session_repository import MySQLSessionRepository
from .attendance.repository import AttendanceRepository, SessionRepository
from .attendance.service import AttendanceSessionService
from .classes.mysql_class_repository import MySQLClassRepository
from .classes.repository import ClassRepository
from .classes.service import ClassService
from .core.constants import (
    DEFAULT_CAMPUS_LATITUDE,
    DEFAULT_CAMPUS_LONGITUDE,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_RADIUS_METERS,
)
from .database.connection import DBConfig, DatabaseConnection
from .geofence.mysql_settings_repository import MySQLSettingsRepository
from .geofence.service import GeofenceService
from .geofence.settings import SettingsRepository
from .realtime.memory_store import InMemoryRealtimeStore
from .realtime.store import RealtimeStore
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    """Everything the app wires once at start-up and shares until shutdown."""

    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    classes_repo: ClassRepository
    attendance_repo: AttendanceRepository
    sessions_repo: SessionRepository
    settings_repo: SettingsRepository
    realtime: RealtimeStore
    status_feed: ClassStatusFeed

    auth_service: AuthService
    user_service: UserService
    geofence_service: GeofenceService
    class_service: ClassService
    session_service: AttendanceSessionService

    history_limit: int = DEFAULT_HISTORY_LIMIT


def assemble_container(
    *,
    users_repo: UserRepository,
    classes_repo: ClassRepository,
    attendance_repo: AttendanceRepository,
    sessions_repo: SessionRepository,
    settings_repo: SettingsRepository,
    realtime: Optional[RealtimeStore] = None,
    conn: Optional[DatabaseConnection] = None,
    default_latitude: float = DEFAULT_CAMPUS_LATITUDE,
    default_longitude: float = DEFAULT_CAMPUS_LONGITUDE,
    default_radius: float = DEFAULT_MAX_RADIUS_METERS,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> Container:
    realtime = realtime or InMemoryRealtimeStore()
    status_feed = ClassStatusFeed(realtime)

    geofence_service = GeofenceService(
        settings_repo,
        default_latitude=default_latitude,
        default_longitude=default_longitude,
        default_radius=default_radius,
    )
    class_service = ClassService(classes_repo, users_repo)
    session_service = AttendanceSessionService(
        classes=class_service,
        sessions=sessions_repo,
        records=attendance_repo,
        users=users_repo,
        geofence=geofence_service,
        pending=PendingCheckInStore(realtime),
        status=status_feed,
    )

    return Container(
        conn=conn,
        users_repo=users_repo,
        classes_repo=classes_repo,
        attendance_repo=attendance_repo,
        sessions_repo=sessions_repo,
        settings_repo=settings_repo,
        realtime=realtime,
        status_feed=status_feed,
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo),
        geofence_service=geofence_service,
        class_service=class_service,
        session_service=session_service,
        history_limit=int(history_limit),
    )


def build_container(*, db_config: dict, geo_defaults: Optional[dict] = None) -> Container:
    config = DBConfig.from_dict(db_config)
    conn = DatabaseConnection.get_instance(config)

    return assemble_container(
        conn=conn,
        users_repo=MySQLUserRepository(conn),
        classes_repo=MySQLClassRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        sessions_repo=MySQLSessionRepository(conn),
        settings_repo=MySQLSettingsRepository(conn),
        **(geo_defaults or {}),
    )
