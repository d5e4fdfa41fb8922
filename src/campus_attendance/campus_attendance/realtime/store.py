from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

SnapshotCallback = Callable[[Any], None]


class Subscription:
    """Cancellation handle returned by RealtimeStore.subscribe.

    Usable as a context manager so the listener is released on every exit
    path. Cancelling twice is a no-op.
    """

    def __init__(self, path: str, release: Callable[["Subscription"], None]):
        self.path = path
        self._release: Optional[Callable[["Subscription"], None]] = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def cancel(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class RealtimeStore(Protocol):
    """Path-scoped key/value tree with live subscriptions.

    Paths are '/'-separated. Subscribers always receive the full snapshot of
    the subscribed path (None when it is empty), never a delta.
    """

    def get(self, path: str) -> Any:
        raise NotImplementedError

    def set(self, path: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError

    def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        raise NotImplementedError


def split_path(path: str) -> tuple[str, ...]:
    parts = tuple(p for p in str(path).split("/") if p)
    if not parts:
        raise ValueError("Realtime path must not be empty")
    return parts


def join_path(*parts: str) -> str:
    return "/".join(str(p).strip("/") for p in parts)
