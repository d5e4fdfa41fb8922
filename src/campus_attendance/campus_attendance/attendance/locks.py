from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class ClassLockRegistry:
    """One mutex per class, created on first use.

    Serialises session transitions and check-ins of a class inside this
    process. Other processes are kept out by the conditional SQL writes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, class_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(class_id)
            if lock is None:
                lock = self._locks[class_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, class_id: str) -> Iterator[None]:
        lock = self._lock_for(class_id)
        with lock:
            yield
