from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol

from ..core.enums import PermissionState
from ..core.exceptions import GeoError, GeoPermissionDenied
from .model import LocationSample, PositionOptions

SampleCallback = Callable[[LocationSample], None]
ErrorCallback = Callable[[GeoError], None]


class WatchHandle(Protocol):
    def cancel(self) -> None:
        raise NotImplementedError


class LocationProvider(Protocol):
    """Device location API (one-shot, continuous and permission query)."""

    async def get_current_position(self, options: PositionOptions) -> LocationSample:
        raise NotImplementedError

    def watch_position(self, on_sample: SampleCallback, on_error: ErrorCallback, options: PositionOptions) -> WatchHandle:
        raise NotImplementedError

    async def query_permission(self) -> PermissionState:
        raise NotImplementedError


class _CallbackWatch:
    def __init__(self, handle: asyncio.Handle):
        self._handle = handle
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        self._handle.cancel()


class StaticLocationProvider(LocationProvider):
    """Reports a fixed position.

    Used by the command line client (coordinates passed on the command line)
    and by tests.
    """

    def __init__(
        self,
        latitude: float,
        longitude: float,
        accuracy_meters: float = 10.0,
        *,
        permission: PermissionState = PermissionState.GRANTED,
        clock: Callable[[], float] = time.time,
    ):
        self._latitude = float(latitude)
        self._longitude = float(longitude)
        self._accuracy = float(accuracy_meters)
        self._permission = permission
        self._clock = clock

    def _sample(self) -> LocationSample:
        return LocationSample(
            latitude=self._latitude,
            longitude=self._longitude,
            accuracy_meters=self._accuracy,
            captured_at_epoch_ms=int(self._clock() * 1000),
        )

    async def get_current_position(self, options: PositionOptions) -> LocationSample:
        if self._permission == PermissionState.DENIED:
            raise GeoPermissionDenied("User denied Geolocation")
        return self._sample()

    def watch_position(self, on_sample: SampleCallback, on_error: ErrorCallback, options: PositionOptions) -> WatchHandle:
        loop = asyncio.get_running_loop()
        if self._permission == PermissionState.DENIED:
            return _CallbackWatch(loop.call_soon(on_error, GeoPermissionDenied("User denied Geolocation")))
        return _CallbackWatch(loop.call_soon(on_sample, self._sample()))

    async def query_permission(self) -> PermissionState:
        return self._permission


def permission_denied(state: Optional[PermissionState]) -> bool:
    return state == PermissionState.DENIED
