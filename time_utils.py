"""Timezone and epoch-millisecond helpers shared by the console modules."""

import math
import time
from datetime import timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from runtime.defaults import DEFAULT_TIMEZONE_NAME


def get_timezone(timezone_name: str) -> ZoneInfo:
    """Return a valid ZoneInfo object, falling back to default timezone."""
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, TypeError, ValueError):
        return ZoneInfo(DEFAULT_TIMEZONE_NAME)


def get_config_tz(config: dict) -> ZoneInfo:
    """Return timezone configured in config, defaulting safely."""
    timezone_name = config.get("TIMEZONE_NAME", DEFAULT_TIMEZONE_NAME)
    return get_timezone(timezone_name)


def now_ms() -> int:
    """Current wall-clock instant in epoch milliseconds."""
    return int(time.time() * 1000)


def normalize_timestamp_value(value: Any, tz: ZoneInfo, naive_policy: str = "config_tz") -> pd.Timestamp:
    """
    Normalize a single timestamp-like value to the given timezone.

    Policy for naive timestamps:
    - "config_tz" (default): interpret naive values as the given timezone.
    - "utc": interpret naive values as UTC then convert.
    """
    if value is None:
        return pd.NaT

    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError):
        return pd.NaT
    if pd.isna(ts):
        return pd.NaT

    if ts.tzinfo is None:
        if naive_policy == "utc":
            ts = ts.tz_localize(timezone.utc)
        else:
            ts = ts.tz_localize(tz)
    return ts.tz_convert(tz)


def to_epoch_ms(value: Any, tz: ZoneInfo = timezone.utc, naive_policy: str = "utc") -> int | None:
    """
    Convert a date-like value to epoch milliseconds.

    Numbers are taken as epoch milliseconds already. Strings and datetimes go
    through pandas; naive values follow `naive_policy`.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str) and not value.strip():
        return None

    ts = normalize_timestamp_value(value, tz, naive_policy=naive_policy)
    if pd.isna(ts):
        return None
    return int(ts.value // 1_000_000)


def epoch_ms_to_ts(value: Any, tz: ZoneInfo) -> pd.Timestamp:
    """Convert epoch milliseconds to a timezone-aware pandas timestamp."""
    return normalize_timestamp_value(pd.to_datetime(int(value), unit="ms", utc=True), tz)


def format_epoch_ms(value: Any, tz: ZoneInfo, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    if value is None:
        return "-"
    ts = epoch_ms_to_ts(value, tz)
    if pd.isna(ts):
        return "-"
    return ts.strftime(fmt)

