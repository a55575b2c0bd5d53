"""Per-device polling sessions and the device list monitor."""

import logging
import threading

from control.reconciler import ActuatorReconciler
from dashboard.zoom import ZoomController
from devices.snapshot import device_list_rows, device_meta
from runtime.defaults import (
    DEFAULT_DEVICE_LIST_POLL_PERIOD_S,
    DEFAULT_DEVICE_POLL_PERIOD_S,
    DEFAULT_HISTORY_POLL_PERIOD_S,
    DEFAULT_LIVENESS_MAX_AGE_MS,
    DEFAULT_MAX_SELECTED_FIELDS,
    DEFAULT_TELEMETRY_HISTORY_LIMIT,
    DEFAULT_TELEMETRY_WINDOW_MS,
)
from runtime.polling import SequencedPoller
from shared_state import mutate_locked, snapshot_locked
from telemetry.window import (
    FieldSelection,
    build_telemetry_window,
    compute_axis_range,
    discover_numeric_fields,
    window_instants,
)


class DeviceSession:
    """
    Everything the detail view holds for one device.

    Owns a device poller and a history poller; the actuator reconciler, field
    selection and zoom live and die with the session.
    """

    def __init__(self, config, api, device_id):
        self.device_id = device_id
        self.max_age_ms = int(config.get("LIVENESS_MAX_AGE_MS", DEFAULT_LIVENESS_MAX_AGE_MS))
        self.window_ms = int(config.get("TELEMETRY_WINDOW_MS", DEFAULT_TELEMETRY_WINDOW_MS))
        history_limit = int(config.get("TELEMETRY_HISTORY_LIMIT", DEFAULT_TELEMETRY_HISTORY_LIMIT))

        self.reconciler = ActuatorReconciler(device_id, api.send_control)
        self.selection = FieldSelection(config.get("MAX_SELECTED_FIELDS", DEFAULT_MAX_SELECTED_FIELDS))
        self.zoom = ZoomController(device_id)

        self._lock = threading.RLock()
        self._history_rows = []
        self._loaded = False
        self._error = ""

        self.device_poller = SequencedPoller(
            f"device:{device_id}",
            lambda: api.get_device(device_id),
            self._on_device,
            config.get("DEVICE_POLL_PERIOD_S", DEFAULT_DEVICE_POLL_PERIOD_S),
            on_error=self._on_device_error,
        )
        self.history_poller = SequencedPoller(
            f"history:{device_id}",
            lambda: api.get_telemetry(device_id, limit=history_limit),
            self._on_history,
            config.get("HISTORY_POLL_PERIOD_S", DEFAULT_HISTORY_POLL_PERIOD_S),
            on_error=self._on_history_error,
        )

    def _on_device(self, device):
        self.reconciler.apply_poll(device)
        with self._lock:
            self._loaded = True
            self._error = ""

    def _on_device_error(self, exc):
        with self._lock:
            self._loaded = True
            self._error = str(exc) or "Failed to load device"

    def _on_history(self, rows):
        with self._lock:
            self._history_rows = list(rows or [])

    def _on_history_error(self, exc):
        # History is optional; charts fall back to "no data".
        logging.debug("Device session %s: history fetch ignored: %s", self.device_id, exc)

    def start(self):
        logging.info("Device session %s: starting pollers.", self.device_id)
        self.device_poller.start()
        self.history_poller.start()

    def stop(self):
        logging.info("Device session %s: stopping pollers.", self.device_id)
        self.device_poller.stop()
        self.history_poller.stop()

    def refresh(self):
        """Manual refresh of both resources in the calling thread."""
        self.device_poller.poll_once()
        self.history_poller.poll_once()

    @property
    def loaded(self):
        with self._lock:
            return self._loaded

    @property
    def error(self):
        with self._lock:
            return self._error

    def telemetry_window(self, now_ms=None):
        with self._lock:
            rows = list(self._history_rows)
        return build_telemetry_window(rows, now_ms=now_ms, window_ms=self.window_ms)

    def chart_state(self, now_ms=None):
        """Window, discovered fields, selection and axis ranges for the plot."""
        window = self.telemetry_window(now_ms=now_ms)
        numeric_keys = discover_numeric_fields(window)
        with self._lock:
            selected = self.selection.sync(numeric_keys)
            x_domain = self.zoom.committed_domain
        return {
            "window": window,
            "instants": window_instants(window),
            "numeric_keys": numeric_keys,
            "selected_keys": selected,
            "y_range": compute_axis_range(window, selected),
            "x_domain": x_domain,
        }

    # Zoom and field selection are driven from threaded dashboard callbacks.
    def bind_zoom(self, device_id):
        with self._lock:
            self.zoom.bind_device(device_id)

    def zoom_to_indices(self, start_idx, end_idx, instants):
        with self._lock:
            return self.zoom.slider_change(start_idx, end_idx, instants)

    def zoom_from_relayout(self, relayout_data, tz):
        with self._lock:
            return self.zoom.apply_relayout(relayout_data, tz)

    def reset_zoom(self):
        with self._lock:
            self.zoom.reset()

    def select_fields(self, checked_fields):
        with self._lock:
            return self.selection.apply_checked(checked_fields)

    def meta(self, now_ms=None):
        return device_meta(self.reconciler.device, self.device_id, max_age_ms=self.max_age_ms, now_ms=now_ms)


class DeviceListMonitor:
    """Device list screen state fed by its own poller."""

    def __init__(self, config, api):
        self.max_age_ms = int(config.get("LIVENESS_MAX_AGE_MS", DEFAULT_LIVENESS_MAX_AGE_MS))
        self._lock = threading.Lock()
        self._devices = []
        self._loaded = False
        self._error = ""
        self.poller = SequencedPoller(
            "device-list",
            api.list_devices,
            self._on_devices,
            config.get("DEVICE_LIST_POLL_PERIOD_S", DEFAULT_DEVICE_LIST_POLL_PERIOD_S),
            on_error=self._on_error,
        )

    def _on_devices(self, devices):
        with self._lock:
            self._devices = list(devices or [])
            self._loaded = True
            self._error = ""

    def _on_error(self, exc):
        with self._lock:
            self._loaded = True
            self._error = str(exc) or "Failed to load devices"

    def start(self):
        self.poller.start()

    def stop(self):
        self.poller.stop()

    def refresh(self):
        return self.poller.poll_once()

    def view(self, now_ms=None):
        with self._lock:
            devices = list(self._devices)
            loaded = self._loaded
            error = self._error
        return {
            "loaded": loaded,
            "error": error,
            "rows": device_list_rows(devices, max_age_ms=self.max_age_ms, now_ms=now_ms),
        }


def activate_device_session(shared_data, config, api, device_id, *, session_factory=DeviceSession):
    """
    Return the session for `device_id`, replacing the active one if it differs.

    The previous session's pollers are stopped; its in-flight responses land on
    the stopped session and are never shown.
    """
    if not device_id:
        return None

    def _swap(data):
        current = data.get("active_device_session")
        if current is not None and current.device_id == device_id:
            return current, None
        session = session_factory(config, api, device_id)
        data["active_device_session"] = session
        return session, current

    session, previous = mutate_locked(shared_data, _swap)
    if previous is not None:
        previous.stop()
    if previous is not None or not session.device_poller.running:
        session.start()
    return session


def get_active_device_session(shared_data):
    return snapshot_locked(shared_data, lambda data: data.get("active_device_session"))
