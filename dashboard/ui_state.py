"""Pure UI state helpers for dashboard badges and actuator controls."""

import math

from control.reconciler import SYNC_CONFIRMED, SYNC_FAILED_STALE, SYNC_PENDING_OPTIMISTIC
from telemetry.liveness import seconds_ago
from time_utils import format_epoch_ms

DATA_RANGE_FORMAT = "%Y-%m-%d %H:%M:%S"
AUTO_MODE_HINT = "Auto mode enabled, switch to MANUAL to control."

_STATE_TONES = {
    "ON": "on",
    "OFF": "off",
    "IDLE": "idle",
}

_SYNC_LABELS = {
    SYNC_CONFIRMED: "",
    SYNC_PENDING_OPTIMISTIC: "Sending…",
    SYNC_FAILED_STALE: "Not confirmed",
}


def status_badge(online):
    if online:
        return {"label": "ONLINE", "tone": "online"}
    return {"label": "OFFLINE", "tone": "offline"}


def seen_text(last_seen_ms, now_ms=None):
    """`Seen: Ns ago`, or None when the device was never seen."""
    secs = seconds_ago(last_seen_ms, now_ms=now_ms)
    if secs is None:
        return None
    return f"Seen: {secs}s ago"


def age_seconds_text(age_ms):
    if age_ms is None or not math.isfinite(age_ms):
        return "-"
    return f"{int(math.floor(age_ms / 1000.0 + 0.5))}s"


def state_tone(state):
    return _STATE_TONES.get(str(state or "").upper(), "unknown")


def actuator_row_state(view):
    """
    Labels and disabled flags for one actuator row.

    The mode button stays usable unless a command is in flight; the ON/OFF
    buttons also lock while the actuator is in AUTO.
    """
    view = dict(view or {})
    busy = bool(view.get("busy"))
    auto = bool(view.get("auto"))
    sync = view.get("sync", SYNC_CONFIRMED)
    status_text = "Sending…" if busy else _SYNC_LABELS.get(sync, "")
    return {
        "key": view.get("key"),
        "type_text": f"Type: {view.get('type') or '-'}",
        "state_text": f"Live: {view.get('live_state')} • Desired: {view.get('desired_state')}",
        "mode_text": f"Mode: {view.get('mode')}",
        "mode_label": view.get("mode"),
        "mode_disabled": busy,
        "on_disabled": busy or auto,
        "off_disabled": busy or auto,
        "hint": AUTO_MODE_HINT if auto else "",
        "state_tone": state_tone(view.get("live_state")),
        "status_text": status_text,
    }


def data_range_text(instants, tz):
    """First and last instant of the window, or "-" when empty."""
    if not instants:
        return "-"
    start = format_epoch_ms(instants[0], tz, DATA_RANGE_FORMAT)
    end = format_epoch_ms(instants[-1], tz, DATA_RANGE_FORMAT)
    return f"{start} → {end}"


def chart_placeholder_text(instants, numeric_keys):
    if not instants:
        return "No telemetry history (last 24h)."
    if not numeric_keys:
        return "No numeric telemetry fields found to plot."
    return None


def field_chip_state(numeric_keys, selected_keys, max_fields):
    """Toggle chips for the field selector; unselected chips lock at the cap."""
    selected = set(selected_keys or [])
    at_cap = len(selected) >= int(max_fields)
    return [
        {
            "key": key,
            "selected": key in selected,
            "disabled": at_cap and key not in selected,
        }
        for key in numeric_keys or []
    ]


def _actions_from_inputs(actuators, states, autos):
    actions = []
    for actuator, state, auto in zip(actuators or [], states or [], autos or []):
        actions.append({"actuator": actuator or "", "set": {"state": state or "", "auto": bool(auto)}})
    return actions


def form_from_inputs(
    *,
    name,
    enabled,
    timezone,
    cron,
    duration_sec,
    action_actuators,
    action_states,
    action_autos,
    end_actuators,
    end_states,
    end_autos,
):
    """Rebuild a schedule form from the editor widgets (checklists give lists)."""
    return {
        "name": name or "",
        "enabled": bool(enabled),
        "timezone": (timezone or "").strip(),
        "cron": cron or "",
        "actions": _actions_from_inputs(action_actuators, action_states, action_autos),
        "duration_sec": duration_sec,
        "end_actions": _actions_from_inputs(end_actuators, end_states, end_autos),
    }
