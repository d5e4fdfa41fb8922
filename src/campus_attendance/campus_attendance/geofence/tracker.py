from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ..core.constants import LOCATION_REFRESH_SECONDS, LOCATION_RETRY_DELAY_SECONDS, MAX_LOCATION_RETRIES
from ..core.enums import PermissionState
from ..core.exceptions import GeoError, GeoPermissionDenied, GeoTimeout
from .distance import evaluate
from .model import GeoSettings, LocationSample, PositionOptions, TrackerState
from .provider import LocationProvider, WatchHandle, permission_denied

logger = logging.getLogger(__name__)

Listener = Callable[[TrackerState], None]


class LocationTracker:
    """Keeps a fresh location and its campus verdict for one client.

    Retry policy: retryable failures (unavailable, timeout) are retried up to
    `max_retries` times, `retry_delay` seconds apart, before the error is
    surfaced. Permission denial is surfaced immediately. Any success resets
    the retry counter.

    In watch mode (`start`) the tracker holds a provider subscription and
    forces a fresh reading every `refresh_interval` seconds. `close` (or
    leaving `async with`) releases the subscription and every timer.
    """

    def __init__(
        self,
        provider: LocationProvider,
        settings: GeoSettings,
        options: Optional[PositionOptions] = None,
        *,
        max_retries: int = MAX_LOCATION_RETRIES,
        retry_delay: float = LOCATION_RETRY_DELAY_SECONDS,
        refresh_interval: float = LOCATION_REFRESH_SECONDS,
    ):
        self._provider = provider
        self._settings = settings
        self._options = options or PositionOptions()
        self._max_retries = int(max_retries)
        self._retry_delay = float(retry_delay)
        self._refresh_interval = float(refresh_interval)

        self._listeners: List[Listener] = []
        self._sample: Optional[LocationSample] = None
        self._error: Optional[GeoError] = None
        self._loading = True
        self._retry_count = 0

        self._watch: Optional[WatchHandle] = None
        self._watching = False
        self._retry_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._closed = False

    # ----- state -----

    @property
    def state(self) -> TrackerState:
        return TrackerState(
            sample=self._sample,
            verdict=evaluate(self._sample, self._settings) if self._sample else None,
            error=self._error.message if self._error else None,
            loading=self._loading,
            retry_count=self._retry_count,
        )

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def is_watching(self) -> bool:
        return self._watch is not None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def update_settings(self, settings: GeoSettings) -> None:
        self._settings = settings
        self._publish()

    def _publish(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            listener(state)

    def _accept(self, sample: LocationSample) -> None:
        if self._closed:
            return
        self._sample = sample
        self._error = None
        self._loading = False
        self._retry_count = 0
        self._publish()

    def _fail(self, error: GeoError) -> None:
        logger.warning("location acquisition failed: %s", error.message)
        self._error = error
        self._loading = False
        self._publish()

    def _should_retry(self, error: GeoError) -> bool:
        if not error.retryable or self._closed:
            return False
        if self._retry_count >= self._max_retries:
            return False
        self._retry_count += 1
        logger.info(
            "location error (%s), retry %d/%d in %.1fs",
            error.message,
            self._retry_count,
            self._max_retries,
            self._retry_delay,
        )
        return True

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("LocationTracker is closed")

    # ----- one-shot -----

    async def permission_state(self) -> PermissionState:
        return await self._provider.query_permission()

    async def _get_position(self, options: PositionOptions) -> LocationSample:
        try:
            return await asyncio.wait_for(
                self._provider.get_current_position(options),
                timeout=options.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise GeoTimeout("Timeout expired")

    async def acquire(self, options: Optional[PositionOptions] = None) -> LocationSample:
        """Single reading with the retry policy; raises the terminal GeoError."""

        self._ensure_open()
        options = options or self._options
        while True:
            try:
                sample = await self._get_position(options)
            except GeoError as e:
                if not self._should_retry(e):
                    self._fail(e)
                    raise
                await asyncio.sleep(self._retry_delay)
                self._ensure_open()
                continue
            self._accept(sample)
            return sample

    # ----- watch mode -----

    async def start(self) -> None:
        self._ensure_open()
        if permission_denied(await self.permission_state()):
            self._fail(GeoPermissionDenied("Location permission is blocked. Enable it in your browser settings."))
            return

        self._watching = True
        try:
            await self.acquire()
        except GeoPermissionDenied:
            self._watching = False
            return
        except GeoError:
            # Surfaced through state; the watch below may still recover.
            pass
        self._start_watch()
        self._start_refresh()

    def _start_watch(self) -> None:
        if self._closed or self._watch is not None:
            return
        self._watch = self._provider.watch_position(self._on_watch_sample, self._on_watch_error, self._options)

    def _cancel_watch(self) -> None:
        if self._watch is not None:
            self._watch.cancel()
            self._watch = None

    def _cancel_retry(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

    def _on_watch_sample(self, sample: LocationSample) -> None:
        self._accept(sample)

    def _on_watch_error(self, error: GeoError) -> None:
        if self._closed:
            return
        if self._should_retry(error):
            self._cancel_watch()
            self._cancel_retry()
            self._retry_task = asyncio.get_running_loop().create_task(self._restart_watch_later())
            return
        self._fail(error)
        if not error.retryable:
            self._cancel_watch()
            self._watching = False

    async def _restart_watch_later(self) -> None:
        await asyncio.sleep(self._retry_delay)
        self._retry_task = None
        self._start_watch()

    def _start_refresh(self) -> None:
        if self._refresh_task is None and not self._closed:
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        # Watches can keep replaying a cached fix; force a fresh one periodically.
        while not self._closed:
            await asyncio.sleep(self._refresh_interval)
            try:
                await self.acquire(self._options.fresh())
            except GeoError as e:
                logger.warning("periodic location refresh failed: %s", e.message)

    async def request_location(self) -> LocationSample:
        """Forced refresh: drop the watch and pending retry, reset, re-acquire."""

        self._ensure_open()
        self._cancel_watch()
        self._cancel_retry()
        self._retry_count = 0
        self._loading = True
        self._error = None
        self._publish()

        try:
            sample = await self.acquire(self._options.fresh())
        except GeoPermissionDenied:
            self._watching = False
            raise
        except GeoError:
            if self._watching:
                self._start_watch()
            raise
        if self._watching:
            self._start_watch()
        return sample

    # ----- teardown -----

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cancel_watch()
        tasks = [t for t in (self._retry_task, self._refresh_task) if t is not None]
        self._retry_task = None
        self._refresh_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._listeners.clear()

    async def __aenter__(self) -> "LocationTracker":
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
