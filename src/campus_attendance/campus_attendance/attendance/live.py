from __future__ import annotations

from typing import Any, Callable, List, Optional

from ..classes.model import Class
from ..common.datetime_utils import to_iso
from ..core.constants import CLASS_STATUS_ROOT, PENDING_ROOT
from ..realtime.store import RealtimeStore, Subscription, join_path
from .model import PendingCheckIn


def _to_pending(snapshot: Any) -> List[PendingCheckIn]:
    if not isinstance(snapshot, dict):
        return []
    items = [PendingCheckIn.from_dict(uid, data) for uid, data in snapshot.items() if isinstance(data, dict)]
    return sorted(items, key=lambda p: (p.timestamp_epoch_ms, p.user_id))


class PendingCheckInStore:
    """Pending check-ins under attendancePending/<class_id>/<user_id>."""

    def __init__(self, store: RealtimeStore):
        self._store = store

    @staticmethod
    def _class_path(class_id: str) -> str:
        return join_path(PENDING_ROOT, class_id)

    def put(self, pending: PendingCheckIn) -> None:
        # keyed by user: a repeat check-in overwrites
        self._store.set(join_path(PENDING_ROOT, pending.class_id, pending.user_id), pending.to_dict())

    def list(self, class_id: str) -> List[PendingCheckIn]:
        return _to_pending(self._store.get(self._class_path(class_id)))

    def clear(self, class_id: str) -> None:
        self._store.delete(self._class_path(class_id))

    def subscribe(self, class_id: str, callback: Callable[[List[PendingCheckIn]], None]) -> Subscription:
        return self._store.subscribe(self._class_path(class_id), lambda snap: callback(_to_pending(snap)))


def class_status(cls: Class) -> dict:
    return {
        "isActive": cls.is_active,
        "currentSessionId": cls.current_session_id,
        "lastSessionId": cls.last_session_id,
        "startTime": to_iso(cls.start_time),
        "endTime": to_iso(cls.end_time),
        "duration": cls.duration_minutes,
    }


class ClassStatusFeed:
    """Mirror of each class's session state under classStatus/<class_id>."""

    def __init__(self, store: RealtimeStore):
        self._store = store

    @staticmethod
    def _path(class_id: str) -> str:
        return join_path(CLASS_STATUS_ROOT, class_id)

    def publish(self, cls: Class) -> None:
        self._store.set(self._path(cls.class_id), class_status(cls))

    def get(self, class_id: str) -> Optional[dict]:
        return self._store.get(self._path(class_id))

    def remove(self, class_id: str) -> None:
        self._store.delete(self._path(class_id))

    def subscribe(self, class_id: str, callback: Callable[[Optional[dict]], None]) -> Subscription:
        return self._store.subscribe(self._path(class_id), callback)
