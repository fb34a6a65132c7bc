"""Constants and defaults.

Note: these are fallbacks only; organizations override them through policy settings.
"""

EARTH_RADIUS_METERS = 6_371_000

DEFAULT_TIMEZONE = "UTC"
DEFAULT_STALE_THRESHOLD_HOURS = 16
DEFAULT_BREAK_THRESHOLD_HOURS = 6
DEFAULT_BREAK_MINUTES = 30
DEFAULT_MAX_ACCURACY_METERS = 100
DEFAULT_MAX_TIMESTAMP_AGE_MS = 60_000
DEFAULT_MAX_PLAUSIBLE_SPEED_KMH = 1000
DEFAULT_REASON_MIN_LENGTH = 10
DEFAULT_REQUEST_TTL_HOURS = 24

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_LOCK_TIMEOUT_SECONDS = 10
MIN_COORDINATE_DECIMALS = 4
