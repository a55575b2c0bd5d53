"""Dashboard layout composition."""

from dash import dcc, html

from dashboard.ui_state import (
    actuator_row_state,
    age_seconds_text,
    seen_text,
    status_badge,
)
from scheduling.model import ACTION_STATES, schedule_id, schedule_summary
from time_utils import format_epoch_ms


def _badge(text, tone="neutral"):
    return html.Span(text, className=f"badge badge--{tone}")


def _kv(label, value):
    return html.Div(
        className="kv",
        children=[
            html.Div(label, className="kv-label"),
            html.Div(value if value not in (None, "") else "-", className="kv-value"),
        ],
    )


def build_dashboard_layout(config, *, refresh_interval_ms=1000):
    max_fields = int(config.get("MAX_SELECTED_FIELDS", 4))
    return html.Div(
        className="app-container",
        children=[
            html.Header(
                className="app-header",
                children=[
                    html.Div(
                        className="app-header-copy",
                        children=[
                            html.H1("ThingsString Console", className="app-title"),
                            html.P("Devices, actuators, telemetry and schedules.", className="app-subtitle"),
                        ],
                    )
                ],
            ),
            dcc.Tabs(
                id="main-tabs",
                value="devices",
                className="main-tabs",
                parent_className="main-tabs-parent",
                children=[
                    dcc.Tab(
                        label="Devices",
                        value="devices",
                        className="main-tab",
                        selected_className="main-tab--selected",
                        children=[
                            html.Div(
                                className="card",
                                children=[
                                    html.Div(
                                        className="card-header",
                                        children=[
                                            html.H3("Devices", className="card-title"),
                                            html.Button("Refresh", id="device-list-refresh-btn", className="btn btn-secondary", n_clicks=0),
                                        ],
                                    ),
                                    html.Div(id="device-list-error", className="status-text status-text--error"),
                                    html.Div(id="device-list-table", className="device-list"),
                                ],
                            )
                        ],
                    ),
                    dcc.Tab(
                        label="Device",
                        value="device",
                        className="main-tab",
                        selected_className="main-tab--selected",
                        children=[
                            html.Div(
                                className="card",
                                children=[
                                    html.Div(
                                        className="card-header",
                                        children=[
                                            html.Div(id="device-header"),
                                            html.Button("Refresh", id="device-refresh-btn", className="btn btn-secondary", n_clicks=0),
                                        ],
                                    ),
                                    html.Div(id="device-error-banner", className="status-text status-text--error"),
                                    html.Div(id="device-command-message", className="status-text"),
                                    html.Div(id="device-meta", className="device-meta-grid"),
                                ],
                            ),
                            html.Div(
                                className="card",
                                children=[
                                    html.H3("Actuators (Mode + Manual Control)", className="card-title"),
                                    html.Div(id="actuator-rows", className="actuator-rows"),
                                ],
                            ),
                            html.Div(
                                className="card",
                                children=[
                                    html.Div(
                                        className="card-header",
                                        children=[
                                            html.H3("Telemetry Graphs (Last 24h)", className="card-title"),
                                            html.Div(id="telemetry-points-text", className="status-text"),
                                            html.Button("Reset Zoom", id="reset-zoom-btn", className="btn btn-secondary", n_clicks=0),
                                        ],
                                    ),
                                    html.Div(
                                        className="form-row",
                                        children=[
                                            html.Span(f"Select fields (max {max_fields}):", className="toggle-label"),
                                            dcc.Checklist(
                                                id="telemetry-field-selector",
                                                className="field-selector",
                                                options=[],
                                                value=[],
                                                inline=True,
                                            ),
                                        ],
                                    ),
                                    dcc.Graph(id="telemetry-graph", className="plot-graph"),
                                    dcc.RangeSlider(
                                        id="telemetry-range-slider",
                                        min=0,
                                        max=1,
                                        step=1,
                                        value=[0, 1],
                                        marks={},
                                        allowCross=False,
                                        updatemode="mouseup",
                                        disabled=True,
                                    ),
                                    html.Div(id="telemetry-range-text", className="status-text"),
                                ],
                            ),
                        ],
                    ),
                    dcc.Tab(
                        label="Schedules",
                        value="schedules",
                        className="main-tab",
                        selected_className="main-tab--selected",
                        children=[
                            html.Div(
                                className="card",
                                children=[
                                    html.Div(
                                        className="card-header",
                                        children=[
                                            html.H3(id="schedule-title", className="card-title", children="Schedules"),
                                            html.Button("Refresh", id="schedule-refresh-btn", className="btn btn-secondary", n_clicks=0),
                                        ],
                                    ),
                                    html.Div(id="schedule-message", className="status-text"),
                                    html.Div(id="schedule-error", className="status-text status-text--error"),
                                    html.Div(id="schedule-list", className="schedule-list"),
                                ],
                            ),
                            html.Div(
                                className="card",
                                children=[
                                    html.Div(
                                        className="card-header",
                                        children=[
                                            html.H3(id="schedule-form-title", className="card-title", children="Create Schedule"),
                                            html.Button("New", id="schedule-new-btn", className="btn btn-secondary", n_clicks=0),
                                        ],
                                    ),
                                    html.Div(
                                        className="form-row",
                                        children=[
                                            html.Label("Name"),
                                            dcc.Input(id="schedule-name-input", type="text", value="", className="form-control"),
                                            dcc.Checklist(
                                                id="schedule-enabled-input",
                                                options=[{"label": "Enabled", "value": "enabled"}],
                                                value=["enabled"],
                                            ),
                                        ],
                                    ),
                                    html.Div(
                                        className="form-row",
                                        children=[
                                            html.Label("Timezone"),
                                            dcc.Input(id="schedule-timezone-input", type="text", value="", className="form-control"),
                                            html.Label("Cron (sec min hour dom mon dow)"),
                                            dcc.Input(id="schedule-cron-input", type="text", value="", className="form-control"),
                                        ],
                                    ),
                                    html.H4("Actions", className="card-subtitle"),
                                    html.Div(id="schedule-actions-container"),
                                    html.Div(
                                        className="form-row",
                                        children=[
                                            html.Label("Duration (s)"),
                                            dcc.Input(id="schedule-duration-input", type="number", min=0, value=0, className="form-control"),
                                        ],
                                    ),
                                    html.H4("End actions", className="card-subtitle"),
                                    html.Div(id="schedule-end-actions-container"),
                                    html.Div(
                                        className="form-row",
                                        children=[
                                            html.Button("+ Action", id="schedule-add-action-btn", className="btn btn-secondary", n_clicks=0),
                                            html.Button("+ End action", id="schedule-add-end-action-btn", className="btn btn-secondary", n_clicks=0),
                                            html.Button("Save", id="schedule-save-btn", className="btn btn-primary", n_clicks=0),
                                        ],
                                    ),
                                ],
                            ),
                        ],
                    ),
                    dcc.Tab(
                        label="Logs",
                        value="logs",
                        className="main-tab",
                        selected_className="main-tab--selected",
                        children=[
                            html.Div(
                                className="card",
                                children=[
                                    html.Div(
                                        className="card-header logs-header",
                                        children=[
                                            html.H3(className="card-title", children="Logs"),
                                            html.Div(id="log-file-path", className="log-file-path"),
                                        ],
                                    ),
                                    html.Div(id="logs-display", className="logs-display"),
                                ],
                            )
                        ],
                    ),
                ],
            ),
            dcc.Store(id="selected-device-store", data=None),
            dcc.Store(id="schedule-editing-store", data=None),
            dcc.Store(id="schedule-action-store", data=None),
            dcc.Store(id="actuator-action-store", data=None),
            dcc.Interval(id="refresh-interval", interval=int(refresh_interval_ms), n_intervals=0),
        ],
    )


def render_device_list(rows, tz, now_ms=None):
    if not rows:
        return html.Div("No devices found.", className="status-text")

    items = []
    for row in rows:
        badge = status_badge(row["online"])
        last_seen = format_epoch_ms(row["last_seen_ms"], tz) if row["last_seen_ms"] is not None else "-"
        items.append(
            html.Div(
                className="device-row",
                children=[
                    html.Div(
                        children=[
                            html.Div(row["name"], className="device-row-name"),
                            html.Div(f"ID: {row['id']}", className="device-row-id"),
                            html.Div(f"Last seen: {last_seen}", className="device-row-seen"),
                        ]
                    ),
                    _badge(badge["label"], badge["tone"]),
                    html.Button(
                        "Open",
                        id={"type": "device-open", "index": row["id"]},
                        className="btn btn-primary",
                        n_clicks=0,
                    ),
                ],
            )
        )
    return items


def render_device_header(meta, now_ms=None):
    badge = status_badge(meta["online"])
    badges = [_badge(badge["label"], badge["tone"])]
    seen = seen_text(meta["last_seen_ms"], now_ms=now_ms)
    if seen:
        badges.append(_badge(seen))
    return html.Div(
        className="device-header",
        children=[
            html.H2(meta["name"] or meta["id"] or "Device", className="device-title"),
            html.Div(f"ID: {meta['id']}", className="device-row-id"),
            html.Div(badges, className="badge-row"),
        ],
    )


def render_device_meta(meta, latest_items):
    topics = meta.get("topics") or {}
    cards = [
        _kv("Model", meta["model"]),
        _kv("Firmware", meta["firmware"]),
        _kv("Age", age_seconds_text(meta["age_ms"])),
        _kv("Telemetry topic", topics.get("telemetry")),
        _kv("Control topic", topics.get("control")),
        _kv("Config topic", topics.get("config")),
    ]
    latest = [_kv(item["key"], str(item["value"])) for item in latest_items]
    if not latest:
        latest = [html.Div("No telemetry yet.", className="status-text")]
    return [
        html.Div(cards, className="kv-grid"),
        html.H4("Latest telemetry", className="card-subtitle"),
        html.Div(latest, className="kv-grid"),
    ]


def render_actuator_rows(views):
    if not views:
        return html.Div("No actuators found.", className="status-text")

    rows = []
    for view in views:
        ui = actuator_row_state(view)
        key = ui["key"]
        details = [
            html.Div(key, className="actuator-key"),
            html.Div(ui["type_text"], className="status-text"),
            html.Div(ui["state_text"], className="status-text"),
            html.Div(ui["mode_text"], className="status-text"),
        ]
        if ui["hint"]:
            details.append(html.Div(ui["hint"], className="status-text"))
        if ui["status_text"]:
            details.append(html.Div(ui["status_text"], className="status-text status-text--muted"))
        rows.append(
            html.Div(
                className="actuator-row",
                children=[
                    html.Div(details),
                    html.Div(
                        className="actuator-controls",
                        children=[
                            _badge(view.get("live_state"), ui["state_tone"]),
                            html.Button(
                                ui["mode_label"],
                                id={"type": "actuator-mode", "index": key},
                                className="btn btn-secondary",
                                disabled=ui["mode_disabled"],
                                n_clicks=0,
                            ),
                            html.Button(
                                "ON",
                                id={"type": "actuator-on", "index": key},
                                className="btn btn-primary",
                                disabled=ui["on_disabled"],
                                n_clicks=0,
                            ),
                            html.Button(
                                "OFF",
                                id={"type": "actuator-off", "index": key},
                                className="btn btn-danger",
                                disabled=ui["off_disabled"],
                                n_clicks=0,
                            ),
                        ],
                    ),
                ],
            )
        )
    return rows


def render_schedule_list(schedules, timezone_default):
    if not schedules:
        return html.Div("No schedules yet.", className="status-text")

    items = []
    for schedule in schedules:
        summary = schedule_summary(schedule, timezone_default)
        target_id = schedule_id(schedule)
        items.append(
            html.Div(
                className="schedule-row",
                children=[
                    html.Div(
                        children=[
                            html.Div(summary["name"], className="schedule-name"),
                            html.Div(summary["trigger"], className="status-text"),
                            html.Div(summary["status"], className="status-text"),
                            html.Ul([html.Li(line) for line in summary["actions"]], className="schedule-actions"),
                        ]
                    ),
                    html.Div(
                        className="schedule-row-controls",
                        children=[
                            html.Button(
                                "Disable" if schedule.get("enabled") else "Enable",
                                id={"type": "schedule-toggle", "index": target_id},
                                className="btn btn-secondary",
                                n_clicks=0,
                            ),
                            html.Button("Edit", id={"type": "schedule-edit", "index": target_id}, className="btn btn-secondary", n_clicks=0),
                            html.Button("Delete", id={"type": "schedule-delete", "index": target_id}, className="btn btn-danger", n_clicks=0),
                        ],
                    ),
                ],
            )
        )
    return items


def render_action_rows(actions, list_name, actuator_keys):
    actuator_options = [{"label": key, "value": key} for key in actuator_keys]
    state_options = [{"label": state, "value": state} for state in ACTION_STATES]
    rows = []
    for index, action in enumerate(actions):
        action_set = action.get("set") or {}
        rows.append(
            html.Div(
                className="form-row schedule-action-row",
                children=[
                    dcc.Dropdown(
                        id={"type": "action-actuator", "list": list_name, "index": index},
                        options=actuator_options,
                        value=action.get("actuator") or None,
                        placeholder="Select actuator",
                        className="form-control",
                    ),
                    dcc.Dropdown(
                        id={"type": "action-state", "list": list_name, "index": index},
                        options=state_options,
                        value=action_set.get("state") or None,
                        clearable=False,
                        className="form-control",
                    ),
                    dcc.Checklist(
                        id={"type": "action-auto", "list": list_name, "index": index},
                        options=[{"label": "auto", "value": "auto"}],
                        value=["auto"] if action_set.get("auto") else [],
                    ),
                    html.Button(
                        "Remove",
                        id={"type": "action-remove", "list": list_name, "index": index},
                        className="btn btn-secondary",
                        n_clicks=0,
                    ),
                ],
            )
        )
    return rows


def schedule_form_values(form):
    """Values for the static editor inputs, in layout order."""
    return (
        form.get("name") or "",
        ["enabled"] if form.get("enabled") else [],
        form.get("timezone") or "",
        form.get("cron") or "",
        form.get("duration_sec"),
    )
