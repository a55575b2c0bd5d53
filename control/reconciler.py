"""Optimistic actuator control reconciled against polled device snapshots."""

import logging
import threading
from copy import deepcopy

from control.actuators import (
    ACTUATOR_STATE_FALLBACK,
    MODE_AUTO,
    MODE_MANUAL,
    actuator_auto,
    actuator_desired_state,
    actuator_live_state,
    actuator_type,
    build_control_payload,
)
from thingsstring_api import ThingsStringAPIError


EVENT_POLL_RECEIVED = "poll_received"
EVENT_OPTIMISTIC_PATCH = "optimistic_patch"
EVENT_COMMAND_FAILED = "command_failed"

SYNC_CONFIRMED = "confirmed"
SYNC_PENDING_OPTIMISTIC = "pending_optimistic"
SYNC_FAILED_STALE = "failed_stale"

MANUAL_REQUIRED_MESSAGE = "Switch to MANUAL to control this actuator."

_OVERLAY_FIELDS = ("auto", "state", "live_state")


def default_device_state():
    return {
        "device": None,
        "overlay_by_actuator": {},
        "sync_by_actuator": {},
        "last_error_by_actuator": {},
    }


def reduce_device_state(state, event):
    """
    Return the next device state for a tagged event without mutating `state`.

    poll_received replaces the document and drops every optimistic overlay.
    optimistic_patch records local values for one actuator. command_failed keeps
    the overlay in place until the next poll and marks it stale; it is a no-op
    when a poll has already dropped that overlay.
    """
    current = state if isinstance(state, dict) else default_device_state()
    event_type = (event or {}).get("type")

    if event_type == EVENT_POLL_RECEIVED:
        device = deepcopy(event.get("device"))
        keys = _control_actuators(device).keys()
        return {
            "device": device,
            "overlay_by_actuator": {},
            "sync_by_actuator": {key: SYNC_CONFIRMED for key in keys},
            "last_error_by_actuator": {},
        }

    next_state = {
        "device": current.get("device"),
        "overlay_by_actuator": deepcopy(current.get("overlay_by_actuator", {})),
        "sync_by_actuator": dict(current.get("sync_by_actuator", {})),
        "last_error_by_actuator": dict(current.get("last_error_by_actuator", {})),
    }
    actuator_key = event.get("actuator") if isinstance(event, dict) else None

    if event_type == EVENT_OPTIMISTIC_PATCH:
        overlay = next_state["overlay_by_actuator"].setdefault(actuator_key, {})
        for field_name in _OVERLAY_FIELDS:
            if event.get(field_name) is not None:
                overlay[field_name] = event[field_name]
        next_state["sync_by_actuator"][actuator_key] = SYNC_PENDING_OPTIMISTIC
        next_state["last_error_by_actuator"].pop(actuator_key, None)
        return next_state

    if event_type == EVENT_COMMAND_FAILED:
        # A poll that landed while the command was in flight already replaced the overlay.
        pending = next_state["sync_by_actuator"].get(actuator_key) == SYNC_PENDING_OPTIMISTIC
        if actuator_key not in next_state["overlay_by_actuator"] and not pending:
            return next_state
        next_state["sync_by_actuator"][actuator_key] = SYNC_FAILED_STALE
        next_state["last_error_by_actuator"][actuator_key] = event.get("error")
        return next_state

    raise ValueError(f"Unknown device state event type: {event_type!r}")


def _control_actuators(device):
    control = (device or {}).get("control") if isinstance(device, dict) else None
    actuators = (control or {}).get("actuators") if isinstance(control, dict) else None
    return actuators if isinstance(actuators, dict) else {}


def _config_actuators(device):
    config = (device or {}).get("config") if isinstance(device, dict) else None
    actuators = (config or {}).get("actuators") if isinstance(config, dict) else None
    return actuators if isinstance(actuators, dict) else {}


def _telemetry_actuators(device):
    last = (device or {}).get("last_telemetry") if isinstance(device, dict) else None
    actuators = (last or {}).get("actuators") if isinstance(last, dict) else None
    return actuators if isinstance(actuators, dict) else {}


def effective_actuator(state, actuator_key):
    """Merged server/optimistic view of one actuator."""
    device = state.get("device") or {}
    control_actuators = _control_actuators(device)
    control_actuator = control_actuators.get(actuator_key) or {}
    overlay = state.get("overlay_by_actuator", {}).get(actuator_key, {})

    auto = overlay["auto"] if "auto" in overlay else actuator_auto(control_actuator)
    desired = overlay["state"] if "state" in overlay else actuator_desired_state(control_actuator)
    if "live_state" in overlay:
        live = overlay["live_state"]
    else:
        live = actuator_live_state(actuator_key, _telemetry_actuators(device), control_actuator)

    return {
        "key": actuator_key,
        "type": actuator_type(actuator_key, control_actuators, _config_actuators(device)),
        "auto": bool(auto),
        "mode": MODE_AUTO if auto else MODE_MANUAL,
        "live_state": live or ACTUATOR_STATE_FALLBACK,
        "desired_state": desired or ACTUATOR_STATE_FALLBACK,
        "sync": state.get("sync_by_actuator", {}).get(actuator_key, SYNC_CONFIRMED),
        "last_error": state.get("last_error_by_actuator", {}).get(actuator_key),
    }


class ActuatorReconciler:
    """
    Owns the local device control view for one device.

    Commands are applied optimistically, then confirmed with a single control
    request. A busy flag per actuator keeps one command in flight per actuator;
    different actuators do not wait on each other.
    """

    def __init__(self, device_id, send_control):
        self.device_id = device_id
        self._send_control = send_control
        self._lock = threading.Lock()
        self._state = default_device_state()
        self._busy = set()
        self.message = ""

    def dispatch(self, event):
        with self._lock:
            self._state = reduce_device_state(self._state, event)
            return self._state

    def apply_poll(self, device):
        """Authoritative snapshot from the device poller."""
        self.dispatch({"type": EVENT_POLL_RECEIVED, "device": device})

    def snapshot(self):
        with self._lock:
            return deepcopy(self._state)

    @property
    def device(self):
        with self._lock:
            return deepcopy(self._state.get("device"))

    def actuator_keys(self):
        with self._lock:
            return list(_control_actuators(self._state.get("device")).keys())

    def actuator_view(self, actuator_key):
        with self._lock:
            view = effective_actuator(self._state, actuator_key)
            view["busy"] = actuator_key in self._busy
            return view

    def actuator_views(self):
        return [self.actuator_view(key) for key in self.actuator_keys()]

    def is_busy(self, actuator_key):
        with self._lock:
            return actuator_key in self._busy

    def toggle_mode(self, actuator_key):
        """Flip AUTO/MANUAL, keeping the current live state as the commanded state."""
        with self._lock:
            if actuator_key in self._busy:
                return {"status": "busy", "message": None}
            view = effective_actuator(self._state, actuator_key)
            next_auto = not view["auto"]
            state = view["live_state"] or ACTUATOR_STATE_FALLBACK
            self._state = reduce_device_state(
                self._state,
                {"type": EVENT_OPTIMISTIC_PATCH, "actuator": actuator_key, "auto": next_auto},
            )
            self._busy.add(actuator_key)
            actuator_type_value = view["type"]

        logging.info(
            "Actuator control: %s mode -> %s (state=%s)",
            actuator_key,
            MODE_AUTO if next_auto else MODE_MANUAL,
            state,
        )
        return self._send(actuator_key, auto=next_auto, state=state, actuator_type_value=actuator_type_value)

    def set_state(self, actuator_key, new_state):
        """Manual on/off command; refused while the actuator is in AUTO."""
        with self._lock:
            if actuator_key in self._busy:
                return {"status": "busy", "message": None}
            view = effective_actuator(self._state, actuator_key)
            if view["auto"]:
                self.message = MANUAL_REQUIRED_MESSAGE
                logging.warning("Actuator control: %s is in AUTO; manual %s refused.", actuator_key, new_state)
                return {"status": "rejected", "message": MANUAL_REQUIRED_MESSAGE}
            self._state = reduce_device_state(
                self._state,
                {
                    "type": EVENT_OPTIMISTIC_PATCH,
                    "actuator": actuator_key,
                    "state": new_state,
                    "live_state": new_state,
                },
            )
            self._busy.add(actuator_key)
            auto = view["auto"]
            actuator_type_value = view["type"]

        logging.info("Actuator control: %s state -> %s", actuator_key, new_state)
        return self._send(actuator_key, auto=auto, state=new_state, actuator_type_value=actuator_type_value)

    def _send(self, actuator_key, *, auto, state, actuator_type_value):
        self.message = ""
        payload = build_control_payload(actuator_key, auto=auto, state=state, actuator_type=actuator_type_value)
        try:
            self._send_control(self.device_id, payload)
            return {"status": "sent", "message": None}
        except ThingsStringAPIError as exc:
            message = f"Command failed: {exc}"
            self.message = message
            logging.error("Actuator control: %s command failed: %s", actuator_key, exc)
            self.dispatch({"type": EVENT_COMMAND_FAILED, "actuator": actuator_key, "error": str(exc)})
            return {"status": "failed", "message": message}
        finally:
            with self._lock:
                self._busy.discard(actuator_key)
