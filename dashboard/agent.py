import json
import logging
import threading
import time

from dash import ALL, Dash, Input, Output, State, callback_context, no_update
from dash.exceptions import PreventUpdate

from dashboard.layout import (
    build_dashboard_layout,
    render_action_rows,
    render_actuator_rows,
    render_device_header,
    render_device_list,
    render_device_meta,
    render_schedule_list,
    schedule_form_values,
)
from dashboard.logs import format_session_logs, log_file_label
from dashboard.plotting import DEFAULT_PLOT_THEME, create_telemetry_figure, slider_marks, slider_value_for_domain
from dashboard.ui_state import data_range_text, field_chip_state, form_from_inputs
from devices.snapshot import latest_scalar_items
from runtime.device_session import activate_device_session, get_active_device_session
from runtime.paths import get_assets_dir, get_project_root
from scheduling.model import add_action, blank_schedule, remove_action, schedule_form_from_record
from scheduling.service import ScheduleService
from shared_state import mutate_locked, read_session_logs, snapshot_locked
from time_utils import get_config_tz, now_ms


def dashboard_agent(config, shared_data):
    """Dash dashboard over the device list, one device's detail view and its schedules."""
    logging.info("Dashboard agent started.")

    logging.getLogger("werkzeug").setLevel(logging.ERROR)

    project_dir = get_project_root(__file__)
    app = Dash(
        __name__,
        suppress_callback_exceptions=True,
        assets_folder=get_assets_dir(project_dir),
    )

    tz = get_config_tz(config)
    plot_theme = dict(DEFAULT_PLOT_THEME)
    max_fields = int(config.get("MAX_SELECTED_FIELDS", 4))
    schedule_tz_fallback = config.get("SCHEDULE_DEFAULT_TIMEZONE")

    api = shared_data["api"]
    device_list_monitor = shared_data["device_list_monitor"]

    app.layout = build_dashboard_layout(config)

    def _trigger():
        ctx = callback_context
        if not ctx.triggered:
            return None, None
        first = ctx.triggered[0]
        raw = str(first["prop_id"]).rsplit(".", 1)[0]
        if raw.startswith("{") and raw.endswith("}"):
            try:
                return json.loads(raw), first.get("value")
            except ValueError:
                return raw, first.get("value")
        return raw, first.get("value")

    def _session_for(device_id):
        if not device_id:
            return None
        return activate_device_session(shared_data, config, api, device_id)

    def _schedule_service_for(device_id):
        if not device_id:
            return None

        def _swap(data):
            current = data.get("schedule_service")
            if current is not None and current.device_id == device_id:
                return current
            service = ScheduleService(api, device_id, timezone_fallback=schedule_tz_fallback)
            data["schedule_service"] = service
            return service

        return mutate_locked(shared_data, _swap)

    @app.callback(
        Output("device-list-table", "children"),
        Output("device-list-error", "children"),
        Input("refresh-interval", "n_intervals"),
        Input("device-list-refresh-btn", "n_clicks"),
    )
    def render_device_list_view(_n_intervals, _refresh_clicks):
        trigger_id, _ = _trigger()
        if trigger_id == "device-list-refresh-btn":
            device_list_monitor.refresh()
        current_ms = now_ms()
        view = device_list_monitor.view(now_ms=current_ms)
        if not view["loaded"]:
            return "Loading…", ""
        return render_device_list(view["rows"], tz, now_ms=current_ms), view["error"]

    @app.callback(
        Output("selected-device-store", "data"),
        Output("main-tabs", "value"),
        Input({"type": "device-open", "index": ALL}, "n_clicks"),
        prevent_initial_call=True,
    )
    def open_device(_clicks):
        trigger_id, value = _trigger()
        if not isinstance(trigger_id, dict) or not value:
            raise PreventUpdate
        device_id = trigger_id.get("index")
        logging.info("Dashboard: opening device %s", device_id)
        _session_for(device_id)
        return device_id, "device"

    @app.callback(
        Output("device-header", "children"),
        Output("device-error-banner", "children"),
        Output("device-meta", "children"),
        Output("actuator-rows", "children"),
        Output("device-command-message", "children"),
        Input("refresh-interval", "n_intervals"),
        Input("selected-device-store", "data"),
        Input("device-refresh-btn", "n_clicks"),
        Input("actuator-action-store", "data"),
    )
    def render_device_view(_n_intervals, device_id, _refresh_clicks, _action):
        if not device_id:
            return "Open a device from the Devices tab.", "", [], [], ""
        session = _session_for(device_id)
        trigger_id, _ = _trigger()
        if trigger_id == "device-refresh-btn":
            session.refresh()

        if not session.loaded:
            return "Loading…", "", [], [], ""
        if session.error:
            return no_update, session.error, [], [], ""

        current_ms = now_ms()
        meta = session.meta(now_ms=current_ms)
        return (
            render_device_header(meta, now_ms=current_ms),
            "",
            render_device_meta(meta, latest_scalar_items(meta["last_telemetry"])),
            render_actuator_rows(session.reconciler.actuator_views()),
            session.reconciler.message or "",
        )

    @app.callback(
        Output("actuator-action-store", "data"),
        Input({"type": "actuator-mode", "index": ALL}, "n_clicks"),
        Input({"type": "actuator-on", "index": ALL}, "n_clicks"),
        Input({"type": "actuator-off", "index": ALL}, "n_clicks"),
        State("selected-device-store", "data"),
        prevent_initial_call=True,
    )
    def handle_actuator_command(_mode_clicks, _on_clicks, _off_clicks, device_id):
        trigger_id, value = _trigger()
        if not isinstance(trigger_id, dict) or not value:
            raise PreventUpdate
        session = get_active_device_session(shared_data)
        if session is None or session.device_id != device_id:
            raise PreventUpdate

        key = trigger_id.get("index")
        kind = trigger_id.get("type")
        if kind == "actuator-mode":
            result = session.reconciler.toggle_mode(key)
        elif kind == "actuator-on":
            result = session.reconciler.set_state(key, "ON")
        else:
            result = session.reconciler.set_state(key, "OFF")
        return {"key": key, "status": result["status"], "at": time.time()}

    @app.callback(
        Output("telemetry-graph", "figure"),
        Output("telemetry-range-slider", "min"),
        Output("telemetry-range-slider", "max"),
        Output("telemetry-range-slider", "value"),
        Output("telemetry-range-slider", "marks"),
        Output("telemetry-range-slider", "disabled"),
        Output("telemetry-field-selector", "options"),
        Output("telemetry-field-selector", "value"),
        Output("telemetry-range-text", "children"),
        Output("telemetry-points-text", "children"),
        Input("refresh-interval", "n_intervals"),
        Input("selected-device-store", "data"),
        Input("telemetry-range-slider", "value"),
        Input("telemetry-graph", "relayoutData"),
        Input("reset-zoom-btn", "n_clicks"),
        Input("telemetry-field-selector", "value"),
    )
    def render_telemetry(_n_intervals, device_id, slider_value, relayout_data, _reset_clicks, checked_fields):
        if not device_id:
            raise PreventUpdate
        session = _session_for(device_id)
        session.bind_zoom(device_id)
        trigger_id, _ = _trigger()

        current_ms = now_ms()
        chart = session.chart_state(now_ms=current_ms)
        instants = chart["instants"]

        if trigger_id == "telemetry-range-slider" and slider_value:
            session.zoom_to_indices(slider_value[0], slider_value[1], instants)
        elif trigger_id == "telemetry-graph":
            session.zoom_from_relayout(relayout_data, tz)
        elif trigger_id == "reset-zoom-btn":
            session.reset_zoom()
        elif trigger_id == "telemetry-field-selector":
            session.select_fields(checked_fields)
        chart = session.chart_state(now_ms=current_ms)

        figure = create_telemetry_figure(
            chart["window"],
            selected_keys=chart["selected_keys"],
            numeric_keys=chart["numeric_keys"],
            y_range=chart["y_range"],
            x_domain=chart["x_domain"],
            tz=tz,
            plot_theme=plot_theme,
            uirevision_key=f"telemetry:{device_id}",
        )
        options = [
            {"label": chip["key"], "value": chip["key"], "disabled": chip["disabled"]}
            for chip in field_chip_state(chart["numeric_keys"], chart["selected_keys"], max_fields)
        ]
        count = len(instants)
        return (
            figure,
            0,
            max(count - 1, 1),
            slider_value_for_domain(instants, chart["x_domain"]),
            slider_marks(instants, tz),
            count < 2,
            options,
            chart["selected_keys"],
            "Drag on chart to zoom • Use the slider to zoom/scroll • Data range: " + data_range_text(instants, tz),
            f"Points: {count}",
        )

    @app.callback(
        Output("schedule-title", "children"),
        Output("schedule-list", "children"),
        Output("schedule-message", "children"),
        Output("schedule-error", "children"),
        Input("main-tabs", "value"),
        Input("selected-device-store", "data"),
        Input("schedule-refresh-btn", "n_clicks"),
        Input("schedule-action-store", "data"),
    )
    def render_schedules(tab_value, device_id, _refresh_clicks, _action):
        if not device_id:
            return "Schedules", "Open a device from the Devices tab.", "", ""
        service = _schedule_service_for(device_id)
        trigger_id, _ = _trigger()
        if trigger_id in {"schedule-refresh-btn", "selected-device-store"} or (
            trigger_id == "main-tabs" and tab_value == "schedules"
        ):
            service.refresh()
        view = service.snapshot()
        if view["loading"]:
            return f"Schedules • {device_id}", "Loading…", view["message"], view["error"]
        return (
            f"Schedules • {device_id}",
            render_schedule_list(view["schedules"], service.timezone_default),
            view["message"],
            view["error"],
        )

    @app.callback(
        Output("schedule-action-store", "data", allow_duplicate=True),
        Input({"type": "schedule-toggle", "index": ALL}, "n_clicks"),
        Input({"type": "schedule-delete", "index": ALL}, "n_clicks"),
        State("selected-device-store", "data"),
        prevent_initial_call=True,
    )
    def handle_schedule_row_action(_toggle_clicks, _delete_clicks, device_id):
        trigger_id, value = _trigger()
        if not isinstance(trigger_id, dict) or not value or not device_id:
            raise PreventUpdate
        service = _schedule_service_for(device_id)
        target_id = trigger_id.get("index")
        if trigger_id.get("type") == "schedule-delete":
            result = service.delete(target_id)
        else:
            schedule = service.find(target_id)
            if schedule is None:
                raise PreventUpdate
            result = service.toggle_enabled(schedule)
        return {"result": result, "reset_form": False, "at": time.time()}

    @app.callback(
        Output("schedule-actions-container", "children"),
        Output("schedule-end-actions-container", "children"),
        Output("schedule-name-input", "value"),
        Output("schedule-enabled-input", "value"),
        Output("schedule-timezone-input", "value"),
        Output("schedule-cron-input", "value"),
        Output("schedule-duration-input", "value"),
        Output("schedule-editing-store", "data"),
        Output("schedule-form-title", "children"),
        Input("selected-device-store", "data"),
        Input("schedule-new-btn", "n_clicks"),
        Input("schedule-add-action-btn", "n_clicks"),
        Input("schedule-add-end-action-btn", "n_clicks"),
        Input({"type": "action-remove", "list": ALL, "index": ALL}, "n_clicks"),
        Input({"type": "schedule-edit", "index": ALL}, "n_clicks"),
        Input("schedule-action-store", "data"),
        State("schedule-editing-store", "data"),
        State("schedule-name-input", "value"),
        State("schedule-enabled-input", "value"),
        State("schedule-timezone-input", "value"),
        State("schedule-cron-input", "value"),
        State("schedule-duration-input", "value"),
        State({"type": "action-actuator", "list": "actions", "index": ALL}, "value"),
        State({"type": "action-state", "list": "actions", "index": ALL}, "value"),
        State({"type": "action-auto", "list": "actions", "index": ALL}, "value"),
        State({"type": "action-actuator", "list": "end_actions", "index": ALL}, "value"),
        State({"type": "action-state", "list": "end_actions", "index": ALL}, "value"),
        State({"type": "action-auto", "list": "end_actions", "index": ALL}, "value"),
    )
    def update_schedule_form(
        device_id,
        _new_clicks,
        _add_clicks,
        _add_end_clicks,
        _remove_clicks,
        _edit_clicks,
        action_result,
        editing_id,
        name,
        enabled,
        timezone_value,
        cron,
        duration_sec,
        action_actuators,
        action_states,
        action_autos,
        end_actuators,
        end_states,
        end_autos,
    ):
        service = _schedule_service_for(device_id)
        timezone_default = service.timezone_default if service is not None else schedule_tz_fallback
        actuator_keys = service.actuator_keys if service is not None else []
        trigger_id, value = _trigger()

        def _blank():
            form = blank_schedule(timezone_default)
            form["cron"] = config.get("SCHEDULE_DEFAULT_CRON", form["cron"])
            return form

        def _render(form, target_id, *, with_fields=True):
            fields = schedule_form_values(form) if with_fields else (no_update,) * 5
            return (
                render_action_rows(form.get("actions") or [], "actions", actuator_keys),
                render_action_rows(form.get("end_actions") or [], "end_actions", actuator_keys),
                *fields,
                target_id,
                "Edit Schedule" if target_id else "Create Schedule",
            )

        if trigger_id in (None, "selected-device-store", "schedule-new-btn"):
            return _render(_blank(), None)
        if trigger_id == "schedule-action-store":
            if isinstance(action_result, dict) and action_result.get("reset_form"):
                return _render(_blank(), None)
            raise PreventUpdate
        if isinstance(trigger_id, dict) and trigger_id.get("type") == "schedule-edit":
            if not value or service is None:
                raise PreventUpdate
            record = service.find(trigger_id.get("index"))
            if record is None:
                raise PreventUpdate
            return _render(schedule_form_from_record(record, timezone_default), trigger_id.get("index"))

        form = form_from_inputs(
            name=name,
            enabled=enabled,
            timezone=timezone_value,
            cron=cron,
            duration_sec=duration_sec,
            action_actuators=action_actuators,
            action_states=action_states,
            action_autos=action_autos,
            end_actuators=end_actuators,
            end_states=end_states,
            end_autos=end_autos,
        )
        if trigger_id == "schedule-add-action-btn":
            form = add_action(form, "actions")
        elif trigger_id == "schedule-add-end-action-btn":
            form = add_action(form, "end_actions")
        elif isinstance(trigger_id, dict) and trigger_id.get("type") == "action-remove":
            if not value:
                raise PreventUpdate
            form = remove_action(form, int(trigger_id.get("index")), trigger_id.get("list"))
        else:
            raise PreventUpdate
        # Typed field values stay as they are; only the action rows re-render.
        return _render(form, editing_id, with_fields=False)

    @app.callback(
        Output("schedule-action-store", "data", allow_duplicate=True),
        Input("schedule-save-btn", "n_clicks"),
        State("selected-device-store", "data"),
        State("schedule-editing-store", "data"),
        State("schedule-name-input", "value"),
        State("schedule-enabled-input", "value"),
        State("schedule-timezone-input", "value"),
        State("schedule-cron-input", "value"),
        State("schedule-duration-input", "value"),
        State({"type": "action-actuator", "list": "actions", "index": ALL}, "value"),
        State({"type": "action-state", "list": "actions", "index": ALL}, "value"),
        State({"type": "action-auto", "list": "actions", "index": ALL}, "value"),
        State({"type": "action-actuator", "list": "end_actions", "index": ALL}, "value"),
        State({"type": "action-state", "list": "end_actions", "index": ALL}, "value"),
        State({"type": "action-auto", "list": "end_actions", "index": ALL}, "value"),
        prevent_initial_call=True,
    )
    def save_schedule(
        save_clicks,
        device_id,
        editing_id,
        name,
        enabled,
        timezone_value,
        cron,
        duration_sec,
        action_actuators,
        action_states,
        action_autos,
        end_actuators,
        end_states,
        end_autos,
    ):
        if not save_clicks or not device_id:
            raise PreventUpdate
        service = _schedule_service_for(device_id)
        form = form_from_inputs(
            name=name,
            enabled=enabled,
            timezone=timezone_value,
            cron=cron,
            duration_sec=duration_sec,
            action_actuators=action_actuators,
            action_states=action_states,
            action_autos=action_autos,
            end_actuators=end_actuators,
            end_states=end_states,
            end_autos=end_autos,
        )
        result = service.save(form, editing_id)
        return {"result": result, "reset_form": bool(result.get("ok")), "at": time.time()}

    @app.callback(
        Output("logs-display", "children"),
        Output("log-file-path", "children"),
        Input("refresh-interval", "n_intervals"),
        Input("main-tabs", "value"),
    )
    def render_logs(_n_intervals, tab_value):
        if tab_value != "logs":
            raise PreventUpdate
        entries = read_session_logs(shared_data, limit=500)
        log_path = snapshot_locked(shared_data, lambda data: data.get("log_file_path"))
        return format_session_logs(entries), log_file_label(log_path)

    dashboard_host = str(config.get("DASHBOARD_HOST", "127.0.0.1"))
    dashboard_port = int(config.get("DASHBOARD_PORT", 8050))

    def run_app():
        app.run(host=dashboard_host, port=dashboard_port, debug=False, threaded=True)

    thread = threading.Thread(target=run_app, daemon=True)
    thread.start()
    logging.info("Dashboard: serving on http://%s:%s", dashboard_host, dashboard_port)

    while not shared_data["shutdown_event"].is_set():
        time.sleep(1)

    logging.info("Dashboard agent stopped.")
