"""Shared runtime defaults used across modules.

Keep this module lightweight (no pandas/heavy imports) so low-level modules can
import shared constants without creating avoidable import dependencies.
"""

DEFAULT_TIMEZONE_NAME = "UTC"
DEFAULT_SCHEDULE_TIMEZONE_NAME = "Asia/Colombo"

DEFAULT_API_BASE_URL = "http://localhost:5000/api"
DEFAULT_API_REQUEST_TIMEOUT_S = 10.0

DEFAULT_DEVICE_POLL_PERIOD_S = 5.0
DEFAULT_HISTORY_POLL_PERIOD_S = 30.0
DEFAULT_DEVICE_LIST_POLL_PERIOD_S = 10.0

# Offline if the last telemetry instant is older than this.
DEFAULT_LIVENESS_MAX_AGE_MS = 60_000

DEFAULT_TELEMETRY_WINDOW_MS = 24 * 60 * 60 * 1000
DEFAULT_TELEMETRY_HISTORY_LIMIT = 10_000
DEFAULT_MAX_SELECTED_FIELDS = 4

DEFAULT_SCHEDULE_CRON = "0 */5 * * * *"


def default_poll_status():
    """Return a fresh default status entry for one polled resource."""
    return {
        "last_attempt": None,
        "last_success": None,
        "last_error": None,
        "last_applied_seq": 0,
        "discarded_count": 0,
    }

