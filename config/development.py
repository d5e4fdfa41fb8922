import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "campus_attendance"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Campus used until an admin saves the geolocation settings
DEFAULT_CAMPUS_LATITUDE = float(os.getenv("CAMPUS_LATITUDE", "22.6288"))
DEFAULT_CAMPUS_LONGITUDE = float(os.getenv("CAMPUS_LONGITUDE", "88.4682"))
DEFAULT_MAX_RADIUS_METERS = float(os.getenv("CAMPUS_RADIUS_METERS", "100"))

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
