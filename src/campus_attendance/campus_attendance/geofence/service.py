from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import now_utc, to_iso
from ..common.validators import require_float
from ..core.constants import (
    DEFAULT_CAMPUS_LATITUDE,
    DEFAULT_CAMPUS_LONGITUDE,
    DEFAULT_MAX_RADIUS_METERS,
    GEOLOCATION_SETTINGS_DOC,
)
from ..core.exceptions import AuthorizationError
from ..users.model import User
from .distance import evaluate
from .model import GeoSettings, GeoVerdict, LocationSample
from .settings import SettingsRepository, clamp_radius, resolve_settings, to_document

logger = logging.getLogger(__name__)


class GeofenceService:
    """Use case: decide whether a location sample is on campus."""

    def __init__(
        self,
        settings: SettingsRepository,
        *,
        default_latitude: float = DEFAULT_CAMPUS_LATITUDE,
        default_longitude: float = DEFAULT_CAMPUS_LONGITUDE,
        default_radius: float = DEFAULT_MAX_RADIUS_METERS,
    ):
        self._settings = settings
        self._defaults = dict(
            default_latitude=float(default_latitude),
            default_longitude=float(default_longitude),
            default_radius=float(default_radius),
        )

    def load_settings(self) -> GeoSettings:
        raw = self._settings.get_document(GEOLOCATION_SETTINGS_DOC)
        if raw is None:
            logger.info("no geolocation settings stored, using defaults")
        return resolve_settings(raw, **self._defaults)

    def save_settings(
        self,
        *,
        actor: User,
        latitude,
        longitude,
        radius_meters,
        now: Optional[datetime] = None,
    ) -> GeoSettings:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can change geolocation settings")

        settings = GeoSettings(
            center_latitude=require_float(latitude, "Latitude", low=-90, high=90),
            center_longitude=require_float(longitude, "Longitude", low=-180, high=180),
            max_radius_meters=clamp_radius(require_float(radius_meters, "Radius")),
        )
        self._settings.put_document(
            GEOLOCATION_SETTINGS_DOC,
            to_document(settings, updated_at=to_iso(now or now_utc())),
        )
        logger.info(
            "geolocation settings updated by %s: center=(%s, %s) radius=%sm",
            actor.user_id,
            settings.center_latitude,
            settings.center_longitude,
            settings.max_radius_meters,
        )
        return settings

    def verify(self, sample: LocationSample, settings: Optional[GeoSettings] = None) -> GeoVerdict:
        return evaluate(sample, settings or self.load_settings())
