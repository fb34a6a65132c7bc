import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timeclock_db"),
}

DEBUG = True

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Seconds to wait for a per-user / per-shift named lock before giving up.
LOCK_TIMEOUT_SECONDS = int(os.getenv("LOCK_TIMEOUT_SECONDS", "10"))

# Applied to every organization before its own stored overrides.
POLICY_DEFAULTS = {
    "timezone": os.getenv("DEFAULT_TIMEZONE", "UTC"),
    "stale_threshold_hours": 16,
    "break_threshold_hours": 6,
    "break_minutes": 30,
    "max_acceptable_accuracy_meters": 100,
    "require_recent_timestamp": True,
    "max_timestamp_age_ms": 60_000,
}

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
