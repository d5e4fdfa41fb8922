import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "campus_attendance"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_CAMPUS_LATITUDE = float(os.getenv("CAMPUS_LATITUDE", "22.6288"))
DEFAULT_CAMPUS_LONGITUDE = float(os.getenv("CAMPUS_LONGITUDE", "88.4682"))
DEFAULT_MAX_RADIUS_METERS = float(os.getenv("CAMPUS_RADIUS_METERS", "100"))

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
