"""Time-bounded telemetry series, numeric field discovery and plot ranges."""

import logging
import math
from collections.abc import Mapping

import pandas as pd

from runtime.defaults import DEFAULT_MAX_SELECTED_FIELDS, DEFAULT_TELEMETRY_WINDOW_MS
from runtime.parsing import is_finite_number
from telemetry.timestamps import resolve_snapshot_ms
from time_utils import now_ms as _wall_clock_ms


TIME_KEY = "__ms"
IGNORED_FIELD_KEYS = frozenset({TIME_KEY, "_id", "deviceId", "id", "device", "actuators"})
DEFAULT_SELECTED_COUNT = 2
AXIS_PADDING_RATIO = 0.08

# Fixed order so a field keeps its colour across refreshes.
CHART_COLORS = (
    "#22c55e",
    "#3b82f6",
    "#f59e0b",
    "#ef4444",
    "#a855f7",
    "#06b6d4",
    "#f97316",
    "#84cc16",
    "#e11d48",
    "#14b8a6",
)


def empty_window():
    return pd.DataFrame(columns=[TIME_KEY])


def build_telemetry_window(rows, now_ms=None, window_ms=DEFAULT_TELEMETRY_WINDOW_MS):
    """
    Build the sorted telemetry window from a history response.

    Rows without a resolvable instant or older than `now - window_ms` are
    dropped. The instant is attached under TIME_KEY and the result is sorted
    ascending by it.
    """
    current_ms = _wall_clock_ms() if now_ms is None else now_ms
    from_ms = current_ms - window_ms

    kept = []
    dropped = 0
    for row in rows or []:
        if not isinstance(row, Mapping):
            dropped += 1
            continue
        ms = resolve_snapshot_ms(row)
        if ms is None or ms < from_ms:
            dropped += 1
            continue
        point = dict(row)
        point[TIME_KEY] = ms
        kept.append(point)

    if dropped:
        logging.debug("Telemetry window: dropped %d row(s) outside window or without instant.", dropped)

    if not kept:
        return empty_window()

    df = pd.DataFrame(kept)
    df = df.sort_values(TIME_KEY, kind="mergesort").reset_index(drop=True)
    return df


def window_instants(window):
    """Return the window instants (epoch ms) in plotting order."""
    if window is None or window.empty or TIME_KEY not in window.columns:
        return []
    return [int(value) for value in window[TIME_KEY].tolist()]


def discover_numeric_fields(window):
    """Alphabetically sorted keys holding at least one finite number."""
    if window is None or window.empty:
        return []

    keys = set()
    for column in window.columns:
        if column in IGNORED_FIELD_KEYS:
            continue
        if any(is_finite_number(value) for value in window[column].tolist()):
            keys.add(str(column))
    return sorted(keys)


def color_for_field(key, numeric_keys):
    try:
        idx = list(numeric_keys).index(key)
    except ValueError:
        idx = 0
    return CHART_COLORS[idx % len(CHART_COLORS)]


def compute_axis_range(window, selected_keys):
    """
    Padded value range over the selected fields, or None for automatic range.

    Equal min and max expand by one unit each side. Otherwise the span is padded
    by 8% per side, the low bound rounded down and the high bound rounded up to
    two decimals.
    """
    if window is None or window.empty or not selected_keys:
        return None

    low = math.inf
    high = -math.inf
    for key in selected_keys:
        if key not in window.columns:
            continue
        for value in window[key].tolist():
            if not is_finite_number(value):
                continue
            low = min(low, value)
            high = max(high, value)

    if not math.isfinite(low) or not math.isfinite(high):
        return None
    if low == high:
        return [low - 1, high + 1]

    padding = (high - low) * AXIS_PADDING_RATIO
    # round() first so binary noise such as 35.99999999 does not floor to 35.
    lo = math.floor(round((low - padding) * 100, 6)) / 100
    hi = math.ceil(round((high + padding) * 100, 6)) / 100
    return [lo, hi]


class FieldSelection:
    """Which discovered numeric fields are plotted, capped at `max_fields`."""

    def __init__(self, max_fields=DEFAULT_MAX_SELECTED_FIELDS):
        self.max_fields = int(max_fields)
        self.selected = []
        self._defaulted = False

    def sync(self, numeric_keys):
        """Pick the default fields once, the first time any are discovered."""
        if self._defaulted or not numeric_keys:
            return list(self.selected)
        self.selected = list(numeric_keys[:DEFAULT_SELECTED_COUNT])
        self._defaulted = True
        return list(self.selected)

    def toggle(self, key):
        if key in self.selected:
            self.selected = [item for item in self.selected if item != key]
        elif len(self.selected) < self.max_fields:
            self.selected = self.selected + [key]
        return list(self.selected)

    def reset(self, numeric_keys):
        self.selected = list((numeric_keys or [])[:DEFAULT_SELECTED_COUNT])
        self._defaulted = bool(self.selected) or self._defaulted
        return list(self.selected)

    def apply_checked(self, checked_keys):
        """Follow a checkbox group: unchecked keys drop, new keys add while under the cap."""
        checked = list(checked_keys or [])
        for key in [item for item in self.selected if item not in checked]:
            self.toggle(key)
        for key in checked:
            if key not in self.selected:
                self.toggle(key)
        return list(self.selected)
