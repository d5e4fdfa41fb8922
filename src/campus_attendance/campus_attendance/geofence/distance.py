from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

from ..core.constants import EARTH_RADIUS_METERS
from .model import Coordinate, GeoSettings, GeoVerdict, LocationSample


def compute_distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance (haversine), degrees in, meters out."""

    phi1 = radians(a.latitude)
    phi2 = radians(b.latitude)
    d_phi = radians(b.latitude - a.latitude)
    d_lambda = radians(b.longitude - a.longitude)

    h = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_METERS * 2 * atan2(sqrt(h), sqrt(1 - h))


def evaluate(sample: LocationSample, settings: GeoSettings) -> GeoVerdict:
    distance = compute_distance_meters(sample.coordinate, settings.center)
    return GeoVerdict(distance_meters=distance, within_campus=distance <= settings.max_radius_meters)
