"""Device snapshot contracts: response unwrapping, identity and list rows."""

from runtime.defaults import DEFAULT_LIVENESS_MAX_AGE_MS
from telemetry.liveness import estimate_liveness


def _as_dict(value):
    return value if isinstance(value, dict) else {}


def unwrap_device_list(response):
    """Accept either `[...]` or `{"devices": [...]}`."""
    if isinstance(response, list):
        return response
    return list(_as_dict(response).get("devices") or [])


def unwrap_device(response):
    """Accept either the device document or `{"device": {...}}`."""
    body = _as_dict(response)
    device = body.get("device")
    if isinstance(device, dict):
        return device
    return body


def unwrap_telemetry_list(response):
    """Accept `[...]`, `{"telemetry": [...]}` or `{"items": [...]}`."""
    if isinstance(response, list):
        return response
    body = _as_dict(response)
    return list(body.get("telemetry") or body.get("items") or [])


def device_identity(device, fallback=None):
    device = _as_dict(device)
    config_device = _as_dict(_as_dict(device.get("config")).get("device"))
    return device.get("deviceId") or config_device.get("device_id") or device.get("_id") or fallback


def device_display_name(device, fallback=None):
    device = _as_dict(device)
    config_device = _as_dict(_as_dict(device.get("config")).get("device"))
    return (
        config_device.get("name")
        or config_device.get("model")
        or device.get("name")
        or device_identity(device)
        or fallback
        or "Unnamed device"
    )


def device_list_rows(devices, *, max_age_ms=DEFAULT_LIVENESS_MAX_AGE_MS, now_ms=None):
    """Summarize devices for the list screen (id, name, online, last seen)."""
    rows = []
    for device in devices or []:
        status = estimate_liveness(device, max_age_ms=max_age_ms, now_ms=now_ms)
        rows.append(
            {
                "id": device_identity(device, fallback="-"),
                "name": device_display_name(device),
                "online": status["online"],
                "last_seen_ms": status["last_seen_ms"],
            }
        )
    return rows


def device_meta(device, fallback_id=None, *, max_age_ms=DEFAULT_LIVENESS_MAX_AGE_MS, now_ms=None):
    """Flatten a device document into the fields the detail view works with."""
    device = _as_dict(device)
    config = _as_dict(device.get("config"))
    config_device = _as_dict(config.get("device"))
    control = _as_dict(device.get("control"))
    last_telemetry = _as_dict(device.get("last_telemetry"))
    status = estimate_liveness(device, max_age_ms=max_age_ms, now_ms=now_ms)

    return {
        "id": device.get("deviceId") or config_device.get("device_id") or fallback_id,
        "name": config_device.get("name") or config_device.get("model") or fallback_id,
        "model": config_device.get("model") or "-",
        "firmware": config_device.get("firmware") or "-",
        "topics": _as_dict(config.get("topics")),
        "config_actuators": _as_dict(config.get("actuators")),
        "control_actuators": _as_dict(control.get("actuators")),
        "last_telemetry": last_telemetry,
        "telemetry_actuators": _as_dict(last_telemetry.get("actuators")),
        "online": status["online"],
        "last_seen_ms": status["last_seen_ms"],
        "age_ms": status["age_ms"],
    }


def latest_scalar_items(last_telemetry):
    """Non-nested fields of the latest telemetry snapshot, in document order."""
    items = []
    for key, value in _as_dict(last_telemetry).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        items.append({"key": key, "value": value})
    return items
