from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..common.validators import require_float, require_non_negative_int
from ..core.constants import LOCATION_TIMEOUT_SECONDS


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationSample:
    """One reading from the device location API.

    Ephemeral: only ever persisted as the `location` of an attendance record.
    """

    latitude: float
    longitude: float
    accuracy_meters: float
    captured_at_epoch_ms: int

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy_meters,
        }


@dataclass(frozen=True)
class GeoSettings:
    """Campus center and the maximum distance a check-in may be from it."""

    center_latitude: float
    center_longitude: float
    max_radius_meters: float

    @property
    def center(self) -> Coordinate:
        return Coordinate(self.center_latitude, self.center_longitude)

    def to_dict(self) -> dict:
        return {
            "centerLatitude": self.center_latitude,
            "centerLongitude": self.center_longitude,
            "maxRadiusMeters": self.max_radius_meters,
        }


@dataclass(frozen=True)
class GeoVerdict:
    distance_meters: float
    within_campus: bool

    def to_dict(self) -> dict:
        return {"distanceMeters": round(self.distance_meters, 2), "withinCampus": self.within_campus}


@dataclass(frozen=True)
class PositionOptions:
    """Acquisition options, mirroring the browser geolocation API."""

    enable_high_accuracy: bool = True
    timeout_seconds: float = LOCATION_TIMEOUT_SECONDS
    maximum_age_seconds: float = 0.0

    def fresh(self) -> "PositionOptions":
        return PositionOptions(
            enable_high_accuracy=self.enable_high_accuracy,
            timeout_seconds=self.timeout_seconds,
            maximum_age_seconds=0.0,
        )


@dataclass(frozen=True)
class TrackerState:
    """Snapshot published by LocationTracker after every change."""

    sample: Optional[LocationSample]
    verdict: Optional[GeoVerdict]
    error: Optional[str]
    loading: bool
    retry_count: int


def sample_from_payload(data: Mapping[str, Any], *, captured_at_epoch_ms: int) -> LocationSample:
    """Build a sample from a JSON body ({latitude, longitude, accuracy?, capturedAt?})."""
    return LocationSample(
        latitude=require_float(data.get("latitude"), "Latitude", low=-90, high=90),
        longitude=require_float(data.get("longitude"), "Longitude", low=-180, high=180),
        accuracy_meters=require_float(data.get("accuracy") or 0.0, "Accuracy", low=0),
        captured_at_epoch_ms=require_non_negative_int(data.get("capturedAt") or captured_at_epoch_ms, "capturedAt"),
    )
