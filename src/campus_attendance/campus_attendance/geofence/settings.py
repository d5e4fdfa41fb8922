from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from ..core.constants import (
    DEFAULT_CAMPUS_LATITUDE,
    DEFAULT_CAMPUS_LONGITUDE,
    DEFAULT_MAX_RADIUS_METERS,
    MAX_RADIUS_METERS,
    MIN_RADIUS_METERS,
)
from .model import GeoSettings

# (current name, legacy name) for each logical value of the settings document.
LATITUDE_FIELDS = ("latitude", "centerLatitude")
LONGITUDE_FIELDS = ("longitude", "centerLongitude")
RADIUS_FIELDS = ("maxDistance", "radiusInMeters")


class SettingsRepository(Protocol):
    """Keyed JSON documents (the `settings` collection)."""

    def get_document(self, name: str) -> Optional[dict]:
        raise NotImplementedError

    def put_document(self, name: str, data: Mapping[str, Any]) -> None:
        raise NotImplementedError


def _coalesce(raw: Mapping[str, Any], names: tuple[str, ...], default: float) -> float:
    for name in names:
        value = raw.get(name)
        if value is None or isinstance(value, bool):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return float(default)


def clamp_radius(radius: float) -> float:
    return min(max(float(radius), MIN_RADIUS_METERS), MAX_RADIUS_METERS)


def resolve_settings(
    raw: Optional[Mapping[str, Any]],
    *,
    default_latitude: float = DEFAULT_CAMPUS_LATITUDE,
    default_longitude: float = DEFAULT_CAMPUS_LONGITUDE,
    default_radius: float = DEFAULT_MAX_RADIUS_METERS,
) -> GeoSettings:
    """Read-time migration of the settings document.

    Prefer the current field name, fall back to the legacy one, then the
    default. The radius is capped at MAX_RADIUS_METERS whatever was stored.
    """

    raw = raw or {}
    radius = _coalesce(raw, RADIUS_FIELDS, default_radius)
    return GeoSettings(
        center_latitude=_coalesce(raw, LATITUDE_FIELDS, default_latitude),
        center_longitude=_coalesce(raw, LONGITUDE_FIELDS, default_longitude),
        max_radius_meters=min(radius, MAX_RADIUS_METERS),
    )


def to_document(settings: GeoSettings, *, updated_at: str) -> dict:
    """Settings document in both naming schemes, plus updatedAt."""

    return {
        LATITUDE_FIELDS[0]: settings.center_latitude,
        LONGITUDE_FIELDS[0]: settings.center_longitude,
        RADIUS_FIELDS[0]: settings.max_radius_meters,
        LATITUDE_FIELDS[1]: settings.center_latitude,
        LONGITUDE_FIELDS[1]: settings.center_longitude,
        RADIUS_FIELDS[1]: settings.max_radius_meters,
        "updatedAt": updated_at,
    }
