"""Schedule definitions: form defaults, editing helpers, validation and payloads.

A schedule fires its start actions on a six-field (seconds resolution) cron
trigger and, when `duration_sec` is positive, its end actions that many seconds
later. Execution happens server-side; this module only shapes definitions.
"""

from copy import deepcopy

from runtime.defaults import DEFAULT_SCHEDULE_CRON, DEFAULT_SCHEDULE_TIMEZONE_NAME
from runtime.parsing import is_finite_number


ACTION_STATES = ("ON", "OFF", "IDLE")
CRON_FIELD_COUNT = 6
START_ACTION_STATE = "ON"
END_ACTION_STATE = "OFF"


def blank_action(state=START_ACTION_STATE, auto=True):
    return {"actuator": "", "set": {"state": state, "auto": bool(auto)}}


def blank_schedule(timezone=DEFAULT_SCHEDULE_TIMEZONE_NAME):
    return {
        "name": "",
        "enabled": True,
        "timezone": timezone,
        "cron": DEFAULT_SCHEDULE_CRON,
        "actions": [blank_action(START_ACTION_STATE)],
        "duration_sec": 0,
        "end_actions": [blank_action(END_ACTION_STATE)],
    }


def schedule_id(schedule):
    if not isinstance(schedule, dict):
        return None
    return schedule.get("_id") or schedule.get("id")


def normalize_schedule_list(response):
    """Accept `[...]`, `{"schedules": [...]}` or `{"items": [...]}`."""
    if isinstance(response, list):
        return response
    if not isinstance(response, dict):
        return []
    return list(response.get("schedules") or response.get("items") or [])


def actuator_keys_for_device(device):
    """Control actuators first, then config-only ones, without duplicates."""
    device = device if isinstance(device, dict) else {}
    control_actuators = ((device.get("control") or {}).get("actuators")) or {}
    config_actuators = ((device.get("config") or {}).get("actuators")) or {}
    keys = []
    for key in list(control_actuators) + list(config_actuators):
        if key not in keys:
            keys.append(key)
    return keys


def timezone_default_for_device(device, fallback=DEFAULT_SCHEDULE_TIMEZONE_NAME):
    device = device if isinstance(device, dict) else {}
    scheduler_cfg = ((device.get("config") or {}).get("scheduler")) or {}
    return scheduler_cfg.get("timezone") or fallback


def _coerce_duration(value):
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return value
    return int(number) if number.is_integer() else number


def schedule_form_from_record(record, timezone_default=DEFAULT_SCHEDULE_TIMEZONE_NAME):
    """Editable form for an existing schedule; empty action lists get one placeholder."""
    record = record if isinstance(record, dict) else {}
    actions = record.get("actions")
    end_actions = record.get("end_actions")
    return {
        "name": record.get("name") or "",
        "enabled": bool(record.get("enabled")),
        "timezone": record.get("timezone") or timezone_default,
        "cron": record.get("cron") or DEFAULT_SCHEDULE_CRON,
        "actions": deepcopy(actions) if isinstance(actions, list) and actions else [blank_action(START_ACTION_STATE)],
        "duration_sec": _coerce_duration(record.get("duration_sec")),
        "end_actions": (
            deepcopy(end_actions) if isinstance(end_actions, list) and end_actions else [blank_action(END_ACTION_STATE)]
        ),
    }


def _placeholder_state(list_name):
    return END_ACTION_STATE if list_name == "end_actions" else START_ACTION_STATE


def add_action(form, list_name="actions"):
    next_form = deepcopy(form)
    next_form.setdefault(list_name, []).append(blank_action(_placeholder_state(list_name)))
    return next_form


def remove_action(form, index, list_name="actions"):
    """Remove one action; the list never becomes empty."""
    next_form = deepcopy(form)
    actions = list(next_form.get(list_name) or [])
    if 0 <= index < len(actions):
        actions.pop(index)
    next_form[list_name] = actions or [blank_action(_placeholder_state(list_name))]
    return next_form


def update_action(form, index, list_name="actions", *, actuator=None, state=None, auto=None):
    next_form = deepcopy(form)
    actions = next_form.setdefault(list_name, [])
    if not 0 <= index < len(actions):
        return next_form
    action = dict(actions[index] or {})
    action_set = dict(action.get("set") or {})
    if actuator is not None:
        action["actuator"] = actuator
    if state is not None:
        action_set["state"] = state
    if auto is not None:
        action_set["auto"] = bool(auto)
    action["set"] = action_set
    actions[index] = action
    return next_form


def validate_schedule_form(form, known_actuators=None):
    """
    Check a schedule form before it is sent.

    Returns {"ok": True} or {"error": reason}. End actions are not checked;
    they are carried through as entered.
    """
    form = form if isinstance(form, dict) else {}

    if not str(form.get("name") or "").strip():
        return {"error": "Schedule name is required"}

    cron = str(form.get("cron") or "").strip()
    if not cron:
        return {"error": "Cron is required"}
    if len(cron.split()) != CRON_FIELD_COUNT:
        return {"error": f"Cron must have {CRON_FIELD_COUNT} fields (seconds first)"}

    actions = form.get("actions") or []
    if not isinstance(actions, list) or not actions:
        return {"error": "At least 1 action is required"}

    known = set(known_actuators) if known_actuators is not None else None
    for action in actions:
        action = action if isinstance(action, dict) else {}
        actuator = action.get("actuator")
        if not actuator:
            return {"error": "Select actuator for all actions"}
        if known is not None and actuator not in known:
            return {"error": f"Unknown actuator '{actuator}'"}
        state = (action.get("set") or {}).get("state")
        if not state:
            return {"error": "Select state for all actions"}
        if state not in ACTION_STATES:
            return {"error": f"Invalid state '{state}' (allowed: {', '.join(ACTION_STATES)})"}

    duration = _coerce_duration(form.get("duration_sec"))
    if not is_finite_number(duration) or duration < 0:
        return {"error": "Duration must be a number >= 0"}

    return {"ok": True}


def schedule_payload_from_form(form, timezone_default=DEFAULT_SCHEDULE_TIMEZONE_NAME):
    """Request body for create/update; call validate_schedule_form first."""
    return {
        "name": str(form.get("name") or "").strip(),
        "enabled": bool(form.get("enabled")),
        "timezone": form.get("timezone") or timezone_default,
        "cron": str(form.get("cron") or "").strip(),
        "actions": deepcopy(form.get("actions") or []),
        "duration_sec": _coerce_duration(form.get("duration_sec")),
        "end_actions": deepcopy(form.get("end_actions") or []),
    }


def schedule_summary(schedule, timezone_default=DEFAULT_SCHEDULE_TIMEZONE_NAME):
    """Display lines for the schedule list."""
    schedule = schedule if isinstance(schedule, dict) else {}
    duration = _coerce_duration(schedule.get("duration_sec"))
    actions = []
    for action in schedule.get("actions") or []:
        action = action if isinstance(action, dict) else {}
        action_set = action.get("set") or {}
        actions.append(
            f"{action.get('actuator')} → {action_set.get('state')} (auto:{str(bool(action_set.get('auto'))).lower()})"
        )
    return {
        "name": schedule.get("name") or "Unnamed schedule",
        "trigger": f"Cron: {schedule.get('cron')} • TZ: {schedule.get('timezone') or timezone_default}",
        "status": f"Enabled: {str(bool(schedule.get('enabled'))).lower()} • Duration: {duration}s",
        "actions": actions,
    }
