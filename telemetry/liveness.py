"""Online/offline classification of devices from their last telemetry instant."""

import math

from runtime.defaults import DEFAULT_LIVENESS_MAX_AGE_MS
from telemetry.timestamps import resolve_snapshot_ms
from time_utils import now_ms as _wall_clock_ms


def estimate_liveness(device, max_age_ms=DEFAULT_LIVENESS_MAX_AGE_MS, now_ms=None):
    """
    Classify a device snapshot against a staleness threshold.

    Returns a dict with `online`, `last_seen_ms` and `age_ms`. A device without
    a resolvable telemetry instant is offline with an infinite age. Age is not
    clamped, so a device clock ahead of ours yields a negative age.
    """
    last_telemetry = (device or {}).get("last_telemetry") if isinstance(device, dict) else None
    last_seen_ms = resolve_snapshot_ms(last_telemetry)
    if last_seen_ms is None:
        return {"online": False, "last_seen_ms": None, "age_ms": math.inf}

    current_ms = _wall_clock_ms() if now_ms is None else now_ms
    age_ms = current_ms - last_seen_ms
    return {
        "online": age_ms <= max_age_ms,
        "last_seen_ms": last_seen_ms,
        "age_ms": age_ms,
    }


def seconds_ago(last_seen_ms, now_ms=None):
    """Rounded seconds since `last_seen_ms`, or None when unknown."""
    if last_seen_ms is None:
        return None
    current_ms = _wall_clock_ms() if now_ms is None else now_ms
    return int(math.floor((current_ms - last_seen_ms) / 1000.0 + 0.5))
