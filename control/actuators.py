"""Readers over actuator control documents and the control command payload.

Control documents may carry `auto`/`state` flat, nested under `default`, or
both. These readers are the only place that knows the fallback order.
"""

ACTUATOR_STATE_FALLBACK = "OFF"
MODE_AUTO = "AUTO"
MODE_MANUAL = "MANUAL"


def _default_block(control_actuator):
    if not isinstance(control_actuator, dict):
        return {}
    default = control_actuator.get("default")
    return default if isinstance(default, dict) else {}


def actuator_auto(control_actuator):
    """Top-level `auto` wins over `default.auto`; missing means manual."""
    if not isinstance(control_actuator, dict):
        return False
    if isinstance(control_actuator.get("auto"), bool):
        return control_actuator["auto"]
    default_auto = _default_block(control_actuator).get("auto")
    if isinstance(default_auto, bool):
        return default_auto
    return False


def actuator_desired_state(control_actuator):
    """`default.state` wins over the flat `state`."""
    default_state = _default_block(control_actuator).get("state")
    if default_state:
        return default_state
    if isinstance(control_actuator, dict) and control_actuator.get("state"):
        return control_actuator["state"]
    return ACTUATOR_STATE_FALLBACK


def actuator_live_state(actuator_key, telemetry_actuators, control_actuator):
    """Best-effort live state: reported telemetry, then control state fallbacks."""
    reported = (telemetry_actuators or {}).get(actuator_key) if isinstance(telemetry_actuators, dict) else None
    if reported:
        return reported
    if isinstance(control_actuator, dict) and control_actuator.get("state"):
        return control_actuator["state"]
    default_state = _default_block(control_actuator).get("state")
    if default_state:
        return default_state
    return ACTUATOR_STATE_FALLBACK


def actuator_type(actuator_key, control_actuators, config_actuators):
    control_actuator = (control_actuators or {}).get(actuator_key) or {}
    config_actuator = (config_actuators or {}).get(actuator_key) or {}
    return control_actuator.get("type") or config_actuator.get("type")


def build_control_payload(actuator_key, *, auto, state, actuator_type=None):
    """
    Build the control request body for one actuator.

    Flat and nested `default` fields carry the same values so consumers reading
    either shape see the command.
    """
    body = {}
    if actuator_type:
        body["type"] = actuator_type
    body["auto"] = bool(auto)
    body["state"] = state
    body["default"] = {"auto": bool(auto), "state": state}
    return {"actuators": {actuator_key: body}}
