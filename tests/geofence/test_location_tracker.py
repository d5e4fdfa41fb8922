from __future__ import annotations

import asyncio

import pytest

from src.campus_attendance.campus_attendance.core.enums import GeoErrorCode, PermissionState
from src.campus_attendance.campus_attendance.core.exceptions import (
    GeoError,
    GeoPermissionDenied,
    GeoTimeout,
    GeoUnavailable,
)
from src.campus_attendance.campus_attendance.geofence.model import GeoSettings, LocationSample, PositionOptions
from src.campus_attendance.campus_attendance.geofence.provider import StaticLocationProvider
from src.campus_attendance.campus_attendance.geofence.tracker import LocationTracker

SETTINGS = GeoSettings(22.6288, 88.4682, 50.0)
HERE = LocationSample(22.6288, 88.4682, 5.0, 1)


class FakeWatch:
    def __init__(self, on_sample, on_error):
        self.on_sample = on_sample
        self.on_error = on_error
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ScriptedProvider:
    """Returns (or raises) the scripted outcomes in order, then `fallback`."""

    def __init__(self, outcomes=(), *, permission=PermissionState.GRANTED, fallback=HERE, hang=False):
        self.outcomes = list(outcomes)
        self.permission = permission
        self.fallback = fallback
        self.hang = hang
        self.calls = 0
        self.options_seen = []
        self.watches = []

    async def get_current_position(self, options):
        self.calls += 1
        self.options_seen.append(options)
        if self.hang:
            await asyncio.sleep(10)
        outcome = self.outcomes.pop(0) if self.outcomes else self.fallback
        if isinstance(outcome, GeoError):
            raise outcome
        return outcome

    def watch_position(self, on_sample, on_error, options):
        watch = FakeWatch(on_sample, on_error)
        self.watches.append(watch)
        return watch

    async def query_permission(self):
        return self.permission


def _tracker(provider, **kwargs) -> LocationTracker:
    kwargs.setdefault("retry_delay", 0)
    kwargs.setdefault("refresh_interval", 3600)
    return LocationTracker(provider, SETTINGS, **kwargs)


def test_transient_errors_are_retried_until_success():
    provider = ScriptedProvider([GeoUnavailable("no fix"), GeoTimeout("slow"), HERE])

    async def scenario():
        tracker = _tracker(provider)
        sample = await tracker.acquire()
        await tracker.close()
        return tracker, sample

    tracker, sample = asyncio.run(scenario())
    assert sample == HERE
    assert provider.calls == 3
    assert tracker.retry_count == 0
    assert tracker.state.error is None


def test_gives_up_after_three_retries():
    provider = ScriptedProvider([GeoUnavailable("no fix")] * 10)

    async def scenario():
        tracker = _tracker(provider)
        try:
            with pytest.raises(GeoUnavailable):
                await tracker.acquire()
            return tracker.state
        finally:
            await tracker.close()

    state = asyncio.run(scenario())
    assert provider.calls == 4
    assert state.retry_count == 3
    assert state.error == "no fix"
    assert state.loading is False


def test_permission_denied_fails_fast():
    provider = ScriptedProvider([GeoPermissionDenied("denied"), HERE])

    async def scenario():
        tracker = _tracker(provider)
        with pytest.raises(GeoPermissionDenied):
            await tracker.acquire()
        count = tracker.retry_count
        await tracker.close()
        return count

    assert asyncio.run(scenario()) == 0
    assert provider.calls == 1


def test_timeout_is_reported_as_geo_timeout():
    provider = ScriptedProvider(hang=True)

    async def scenario():
        tracker = _tracker(provider, options=PositionOptions(timeout_seconds=0.01), max_retries=0)
        try:
            await tracker.acquire()
        finally:
            await tracker.close()

    with pytest.raises(GeoTimeout):
        asyncio.run(scenario())


def test_start_with_blocked_permission_does_not_acquire():
    provider = ScriptedProvider(permission=PermissionState.DENIED)

    async def scenario():
        async with _tracker(provider) as tracker:
            return tracker.state, tracker.is_watching

    state, watching = asyncio.run(scenario())
    assert provider.calls == 0
    assert watching is False
    assert "permission" in state.error.lower()


def test_watch_mode_is_released_on_exit():
    provider = ScriptedProvider()

    async def scenario():
        async with _tracker(provider) as tracker:
            assert tracker.is_watching
            verdict = tracker.state.verdict
        return tracker, verdict

    tracker, verdict = asyncio.run(scenario())
    assert verdict.within_campus is True
    assert provider.watches[0].cancelled is True
    assert tracker.is_watching is False


def test_periodic_refresh_forces_fresh_reading():
    provider = ScriptedProvider()

    async def scenario():
        tracker = _tracker(provider, options=PositionOptions(maximum_age_seconds=30), refresh_interval=0.01)
        async with tracker:
            await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert provider.calls >= 2
    assert provider.options_seen[0].maximum_age_seconds == 30
    assert provider.options_seen[-1].maximum_age_seconds == 0


def test_request_location_replaces_the_watch():
    provider = ScriptedProvider()

    async def scenario():
        async with _tracker(provider) as tracker:
            first = provider.watches[0]
            await tracker.request_location()
            return first, tracker.is_watching

    first, watching_after = asyncio.run(scenario())
    assert first.cancelled is True
    assert len(provider.watches) == 2
    assert watching_after is True
    assert provider.options_seen[-1].maximum_age_seconds == 0


def test_watch_error_restarts_watch_after_delay():
    provider = ScriptedProvider()

    async def scenario():
        async with _tracker(provider) as tracker:
            first = provider.watches[0]
            first.on_error(GeoUnavailable("lost"))
            assert first.cancelled is True
            assert tracker.retry_count == 1
            await asyncio.sleep(0.01)
            second = provider.watches[-1]
            second.on_sample(LocationSample(22.6289, 88.4682, 4.0, 2))
            return len(provider.watches), tracker.retry_count

    watches, retries = asyncio.run(scenario())
    assert watches == 2
    assert retries == 0


def test_listeners_receive_every_state_change():
    provider = ScriptedProvider([GeoUnavailable("no fix"), HERE])
    states = []

    async def scenario():
        tracker = _tracker(provider)
        remove = tracker.add_listener(states.append)
        await tracker.acquire()
        remove()
        tracker.update_settings(GeoSettings(0.0, 0.0, 10.0))
        await tracker.close()

    asyncio.run(scenario())
    assert states[-1].sample == HERE
    assert states[-1].verdict.within_campus is True


def test_closed_tracker_refuses_work():
    async def scenario():
        tracker = _tracker(ScriptedProvider())
        await tracker.close()
        await tracker.acquire()

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_static_provider_and_error_codes():
    provider = StaticLocationProvider(22.6288, 88.4682, 7.0, clock=lambda: 1.5)

    async def scenario():
        return await _tracker(provider).acquire()

    sample = asyncio.run(scenario())
    assert (sample.latitude, sample.accuracy_meters, sample.captured_at_epoch_ms) == (22.6288, 7.0, 1500)

    assert isinstance(GeoError.from_code(GeoErrorCode.PERMISSION_DENIED), GeoPermissionDenied)
    assert isinstance(GeoError.from_code(3, "slow"), GeoTimeout)
    assert GeoError.from_code(2).retryable is True
