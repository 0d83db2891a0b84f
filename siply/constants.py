from __future__ import annotations

APP_NAME = "Siply"

SCHEMA_VERSION = 1

MIN_INTERVAL_MINUTES = 30
MAX_NOTIFICATIONS_PER_DAY = 48
NUDGE_MINUTES = (5, 10)
REMINDER_TARGET_ML = 250

HORIZON_MINUTES = 24 * 60
MAX_GENERATION_ITERATIONS = 1000

HISTORY_RETENTION_DAYS = 60
QUICK_LOG_MIN_PRESETS = 2
QUICK_LOG_MAX_PRESETS = 4
DEFAULT_QUICK_LOG_PRESETS = (150, 250, 500)
DEFAULT_GENTLE_GOAL_THRESHOLD = 80

DEFAULT_TARGET_LITERS = 3.0
DEFAULT_WINDOW_START = "07:00"
DEFAULT_WINDOW_END = "23:00"
DEFAULT_SIP_ML = 15
