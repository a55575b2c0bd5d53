"""Configuration loader for the ThingsString console."""

import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from runtime.defaults import (
    DEFAULT_API_BASE_URL,
    DEFAULT_API_REQUEST_TIMEOUT_S,
    DEFAULT_DEVICE_LIST_POLL_PERIOD_S,
    DEFAULT_DEVICE_POLL_PERIOD_S,
    DEFAULT_HISTORY_POLL_PERIOD_S,
    DEFAULT_LIVENESS_MAX_AGE_MS,
    DEFAULT_MAX_SELECTED_FIELDS,
    DEFAULT_SCHEDULE_CRON,
    DEFAULT_SCHEDULE_TIMEZONE_NAME,
    DEFAULT_TELEMETRY_HISTORY_LIMIT,
    DEFAULT_TELEMETRY_WINDOW_MS,
    DEFAULT_TIMEZONE_NAME,
)
from runtime.parsing import parse_float, parse_int

DEFAULT_DASHBOARD_HOST = "127.0.0.1"
DEFAULT_DASHBOARD_PORT = 8050
API_PASSWORD_ENV_VAR = "THINGSSTRING_API_PASSWORD"
CRON_FIELD_COUNT = 6


def _parse_timezone(timezone_name, default, key_name):
    try:
        ZoneInfo(timezone_name)
        return timezone_name
    except (ZoneInfoNotFoundError, TypeError, ValueError):
        logging.warning("Invalid %s='%s'. Using default '%s'.", key_name, timezone_name, default)
        return default


def _parse_host(value, default, key_name):
    if value is None:
        return default
    host = str(value).strip()
    if not host:
        logging.warning("Invalid %s='%s'. Using default '%s'.", key_name, value, default)
        return default
    return host


def _parse_base_url(value, default, key_name):
    if value is None:
        return default
    url = str(value).strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        logging.warning("Invalid %s='%s'. Using default '%s'.", key_name, value, default)
        return default
    return url


def _parse_optional_text(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_cron(value, default, key_name):
    text = str(value or "").strip()
    if len(text.split()) != CRON_FIELD_COUNT:
        logging.warning(
            "Invalid %s='%s'. Expected %d fields (seconds first). Using default '%s'.",
            key_name,
            value,
            CRON_FIELD_COUNT,
            default,
        )
        return default
    return text


def load_config(config_path="config.yaml"):
    """Load configuration from YAML and return a flat runtime dict."""
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, "r", encoding="utf-8") as handle:
        yaml_config = yaml.safe_load(handle) or {}

    config = {}

    general = yaml_config.get("general", {}) or {}
    log_level_str = str(general.get("log_level", "INFO")).upper()
    config["LOG_LEVEL"] = getattr(logging, log_level_str, logging.INFO)

    time_cfg = yaml_config.get("time", {}) or {}
    config["TIMEZONE_NAME"] = _parse_timezone(
        time_cfg.get("timezone", DEFAULT_TIMEZONE_NAME),
        DEFAULT_TIMEZONE_NAME,
        "time.timezone",
    )

    api_cfg = yaml_config.get("api", {}) or {}
    config["API_BASE_URL"] = _parse_base_url(
        api_cfg.get("base_url", DEFAULT_API_BASE_URL),
        DEFAULT_API_BASE_URL,
        "api.base_url",
    )
    config["API_EMAIL"] = _parse_optional_text(api_cfg.get("email"))
    config["API_TOKEN"] = _parse_optional_text(api_cfg.get("token"))
    config["API_REQUEST_TIMEOUT_S"] = parse_float(
        api_cfg.get("request_timeout_s", DEFAULT_API_REQUEST_TIMEOUT_S),
        DEFAULT_API_REQUEST_TIMEOUT_S,
        "api.request_timeout_s",
        min_value=0.1,
    )

    polling_cfg = yaml_config.get("polling", {}) or {}
    config["DEVICE_POLL_PERIOD_S"] = parse_float(
        polling_cfg.get("device_period_s", DEFAULT_DEVICE_POLL_PERIOD_S),
        DEFAULT_DEVICE_POLL_PERIOD_S,
        "polling.device_period_s",
        min_value=0.1,
    )
    config["HISTORY_POLL_PERIOD_S"] = parse_float(
        polling_cfg.get("history_period_s", DEFAULT_HISTORY_POLL_PERIOD_S),
        DEFAULT_HISTORY_POLL_PERIOD_S,
        "polling.history_period_s",
        min_value=0.1,
    )
    config["DEVICE_LIST_POLL_PERIOD_S"] = parse_float(
        polling_cfg.get("device_list_period_s", DEFAULT_DEVICE_LIST_POLL_PERIOD_S),
        DEFAULT_DEVICE_LIST_POLL_PERIOD_S,
        "polling.device_list_period_s",
        min_value=0.1,
    )

    telemetry_cfg = yaml_config.get("telemetry", {}) or {}
    config["LIVENESS_MAX_AGE_MS"] = parse_int(
        telemetry_cfg.get("liveness_max_age_ms", DEFAULT_LIVENESS_MAX_AGE_MS),
        DEFAULT_LIVENESS_MAX_AGE_MS,
        "telemetry.liveness_max_age_ms",
        min_value=0,
    )
    config["TELEMETRY_WINDOW_MS"] = parse_int(
        telemetry_cfg.get("window_ms", DEFAULT_TELEMETRY_WINDOW_MS),
        DEFAULT_TELEMETRY_WINDOW_MS,
        "telemetry.window_ms",
        min_value=1,
    )
    config["TELEMETRY_HISTORY_LIMIT"] = parse_int(
        telemetry_cfg.get("history_limit", DEFAULT_TELEMETRY_HISTORY_LIMIT),
        DEFAULT_TELEMETRY_HISTORY_LIMIT,
        "telemetry.history_limit",
        min_value=1,
    )
    config["MAX_SELECTED_FIELDS"] = parse_int(
        telemetry_cfg.get("max_selected_fields", DEFAULT_MAX_SELECTED_FIELDS),
        DEFAULT_MAX_SELECTED_FIELDS,
        "telemetry.max_selected_fields",
        min_value=1,
    )

    schedule_cfg = yaml_config.get("schedules", {}) or {}
    config["SCHEDULE_DEFAULT_TIMEZONE"] = _parse_timezone(
        schedule_cfg.get("default_timezone", DEFAULT_SCHEDULE_TIMEZONE_NAME),
        DEFAULT_SCHEDULE_TIMEZONE_NAME,
        "schedules.default_timezone",
    )
    config["SCHEDULE_DEFAULT_CRON"] = _parse_cron(
        schedule_cfg.get("default_cron", DEFAULT_SCHEDULE_CRON),
        DEFAULT_SCHEDULE_CRON,
        "schedules.default_cron",
    )

    dashboard_cfg = yaml_config.get("dashboard", {}) or {}
    config["DASHBOARD_HOST"] = _parse_host(
        dashboard_cfg.get("host", DEFAULT_DASHBOARD_HOST),
        DEFAULT_DASHBOARD_HOST,
        "dashboard.host",
    )
    config["DASHBOARD_PORT"] = parse_int(
        dashboard_cfg.get("port", DEFAULT_DASHBOARD_PORT),
        DEFAULT_DASHBOARD_PORT,
        "dashboard.port",
        min_value=1,
    )

    logging.debug("Configuration loaded from %s", config_path)
    return config
