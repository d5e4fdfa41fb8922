"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_METERS = 6_371_000.0

DEFAULT_CAMPUS_LATITUDE = 22.6288
DEFAULT_CAMPUS_LONGITUDE = 88.4682
DEFAULT_MAX_RADIUS_METERS = 100.0
MIN_RADIUS_METERS = 10.0
MAX_RADIUS_METERS = 100.0

GEOLOCATION_SETTINGS_DOC = "geolocation"

MAX_LOCATION_RETRIES = 3
LOCATION_RETRY_DELAY_SECONDS = 2.0
LOCATION_REFRESH_SECONDS = 60.0
LOCATION_TIMEOUT_SECONDS = 5.0

PENDING_ROOT = "attendancePending"
CLASS_STATUS_ROOT = "classStatus"

DEFAULT_HISTORY_LIMIT = 50

MAX_SESSION_DURATION_MINUTES = 24 * 60
