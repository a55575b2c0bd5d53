"""Drag-to-zoom and overview-slider selection over the telemetry time axis."""

import logging
import math

from time_utils import to_epoch_ms


STATE_IDLE = "idle"
STATE_DRAGGING = "dragging"


def _finite(value):
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def clamp_domain(start, end):
    """Ascending [min, max] pair, or None for unusable or zero-width input."""
    if not _finite(start) or not _finite(end):
        return None
    if start == end:
        return None
    return [start, end] if start < end else [end, start]


class ZoomController:
    """
    Selection state for one plot.

    `committed_domain` is what the x axis shows (None means full range). A drag
    only commits on release, and a release on the starting point is a click.
    """

    def __init__(self, device_id=None):
        self.device_id = device_id
        self.state = STATE_IDLE
        self.anchor = None
        self.provisional = None
        self.committed_domain = None

    def _to_idle(self):
        self.state = STATE_IDLE
        self.anchor = None
        self.provisional = None

    def commit(self, start, end):
        """Commit a pair through the normalize/discard rule; returns True if committed."""
        domain = clamp_domain(start, end)
        if domain is None:
            return False
        self.committed_domain = domain
        return True

    def pointer_down(self, x_value):
        if x_value is None:
            return
        self.state = STATE_DRAGGING
        self.anchor = x_value
        self.provisional = None

    def pointer_move(self, x_value):
        if self.state != STATE_DRAGGING or x_value is None:
            return
        self.provisional = x_value

    def pointer_up(self):
        if self.state == STATE_DRAGGING and self.anchor is not None and self.provisional is not None:
            self.commit(self.anchor, self.provisional)
        self._to_idle()
        return self.committed_domain

    def selection_band(self):
        """Provisional band while dragging, for live feedback."""
        if self.state != STATE_DRAGGING or self.anchor is None or self.provisional is None:
            return None
        return (self.anchor, self.provisional)

    def slider_change(self, start_index, end_index, instants):
        """Map an index range of the windowed series to its instants and commit."""
        try:
            start = instants[int(start_index)]
            end = instants[int(end_index)]
        except (IndexError, TypeError, ValueError):
            return self.committed_domain
        self.commit(start, end)
        return self.committed_domain

    def reset(self):
        self._to_idle()
        self.committed_domain = None

    def bind_device(self, device_id):
        """Zoom does not carry over between devices."""
        if device_id != self.device_id:
            logging.debug("Zoom: device changed %s -> %s, resetting.", self.device_id, device_id)
            self.device_id = device_id
            self.reset()

    def apply_relayout(self, relayout_data, tz):
        """
        Apply a plotly relayout event on the time axis.

        A range pair commits like a drag; autorange resets to the full range.
        Other relayout keys are ignored.
        """
        data = relayout_data if isinstance(relayout_data, dict) else {}
        if data.get("xaxis.autorange"):
            self.reset()
            return self.committed_domain

        if "xaxis.range" in data and isinstance(data["xaxis.range"], (list, tuple)) and len(data["xaxis.range"]) == 2:
            raw_start, raw_end = data["xaxis.range"]
        elif "xaxis.range[0]" in data and "xaxis.range[1]" in data:
            raw_start, raw_end = data["xaxis.range[0]"], data["xaxis.range[1]"]
        else:
            return self.committed_domain

        # Plotly reports date axes as naive wall-clock strings in the plot timezone.
        start = to_epoch_ms(raw_start, tz, naive_policy="config_tz")
        end = to_epoch_ms(raw_end, tz, naive_policy="config_tz")
        self.commit(start, end)
        return self.committed_domain
