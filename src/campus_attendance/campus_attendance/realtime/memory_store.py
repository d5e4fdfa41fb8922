from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Tuple

from .store import RealtimeStore, SnapshotCallback, Subscription, split_path


class InMemoryRealtimeStore(RealtimeStore):
    """Process-local realtime store.

    Listeners run on the writer's thread, after the write is applied and
    outside the store lock.
    """

    def __init__(self):
        self._root: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._subscribers: List[Tuple[Tuple[str, ...], SnapshotCallback, Subscription]] = []

    def _read(self, parts: Tuple[str, ...]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def get(self, path: str) -> Any:
        with self._lock:
            return self._read(split_path(path))

    def set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        with self._lock:
            node = self._root
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            if value is None:
                node.pop(parts[-1], None)
            else:
                node[parts[-1]] = copy.deepcopy(value)
            self._prune(parts[:-1])
            notifications = self._collect(parts)
        self._notify(notifications)

    def delete(self, path: str) -> None:
        self.set(path, None)

    def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        parts = split_path(path)
        subscription = Subscription("/".join(parts), self._release)
        with self._lock:
            self._subscribers.append((parts, callback, subscription))
            snapshot = self._read(parts)
        callback(snapshot)
        return subscription

    def subscriber_count(self, path: str | None = None) -> int:
        with self._lock:
            if path is None:
                return len(self._subscribers)
            parts = split_path(path)
            return sum(1 for p, _, _ in self._subscribers if p == parts)

    def _release(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s[2] is not subscription]

    def _prune(self, parts: Tuple[str, ...]) -> None:
        # Drop containers left empty by a delete, deepest first.
        for depth in range(len(parts), 0, -1):
            prefix = parts[:depth]
            parent: Any = self._root
            for part in prefix[:-1]:
                parent = parent.get(part) if isinstance(parent, dict) else None
                if parent is None:
                    return
            child = parent.get(prefix[-1]) if isinstance(parent, dict) else None
            if isinstance(child, dict) and not child:
                del parent[prefix[-1]]
            else:
                return

    def _collect(self, changed: Tuple[str, ...]) -> List[Tuple[SnapshotCallback, Any]]:
        out = []
        for parts, callback, subscription in self._subscribers:
            n = min(len(parts), len(changed))
            if parts[:n] == changed[:n] and subscription.active:
                out.append((callback, self._read(parts)))
        return out

    def _notify(self, notifications: List[Tuple[SnapshotCallback, Any]]) -> None:
        for callback, snapshot in notifications:
            callback(snapshot)
