import math
import unittest
from zoneinfo import ZoneInfo

try:
    from dashboard.ui_state import (
        AUTO_MODE_HINT,
        actuator_row_state,
        age_seconds_text,
        chart_placeholder_text,
        data_range_text,
        field_chip_state,
        form_from_inputs,
        seen_text,
        state_tone,
        status_badge,
    )
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


JAN_1_2024_MS = 1_704_067_200_000


def _view(**overrides):
    view = {
        "key": "pump",
        "type": "relay",
        "auto": False,
        "mode": "MANUAL",
        "live_state": "ON",
        "desired_state": "OFF",
        "sync": "confirmed",
        "busy": False,
    }
    view.update(overrides)
    return view


@unittest.skipIf(_IMPORT_ERROR is not None, f"UI state tests require pandas ({_IMPORT_ERROR})")
class BadgeTextTests(unittest.TestCase):
    def test_status_badge(self):
        self.assertEqual(status_badge(True), {"label": "ONLINE", "tone": "online"})
        self.assertEqual(status_badge(False), {"label": "OFFLINE", "tone": "offline"})

    def test_seen_and_age_text(self):
        self.assertEqual(seen_text(1_000, now_ms=3_500), "Seen: 3s ago")
        self.assertIsNone(seen_text(None, now_ms=3_500))
        self.assertEqual(age_seconds_text(2_499), "2s")
        self.assertEqual(age_seconds_text(math.inf), "-")
        self.assertEqual(age_seconds_text(None), "-")

    def test_state_tone(self):
        self.assertEqual(state_tone("on"), "on")
        self.assertEqual(state_tone("IDLE"), "idle")
        self.assertEqual(state_tone("FAULT"), "unknown")
        self.assertEqual(state_tone(None), "unknown")


@unittest.skipIf(_IMPORT_ERROR is not None, f"UI state tests require pandas ({_IMPORT_ERROR})")
class ActuatorRowStateTests(unittest.TestCase):
    def test_manual_idle_row(self):
        row = actuator_row_state(_view())
        self.assertEqual(row["state_text"], "Live: ON • Desired: OFF")
        self.assertEqual(row["type_text"], "Type: relay")
        self.assertFalse(row["mode_disabled"])
        self.assertFalse(row["on_disabled"])
        self.assertEqual(row["hint"], "")
        self.assertEqual(row["state_tone"], "on")
        self.assertEqual(row["status_text"], "")

    def test_auto_locks_on_off_only(self):
        row = actuator_row_state(_view(auto=True, mode="AUTO"))
        self.assertFalse(row["mode_disabled"])
        self.assertTrue(row["on_disabled"])
        self.assertTrue(row["off_disabled"])
        self.assertEqual(row["hint"], AUTO_MODE_HINT)

    def test_busy_locks_everything(self):
        row = actuator_row_state(_view(busy=True))
        self.assertTrue(row["mode_disabled"])
        self.assertTrue(row["on_disabled"])
        self.assertEqual(row["status_text"], "Sending…")

    def test_failed_command_is_flagged(self):
        self.assertEqual(actuator_row_state(_view(sync="failed_stale"))["status_text"], "Not confirmed")
        self.assertEqual(actuator_row_state(_view(type=None))["type_text"], "Type: -")


@unittest.skipIf(_IMPORT_ERROR is not None, f"UI state tests require pandas ({_IMPORT_ERROR})")
class TelemetryPanelTextTests(unittest.TestCase):
    def test_data_range_text(self):
        tz = ZoneInfo("UTC")
        self.assertEqual(data_range_text([], tz), "-")
        self.assertEqual(
            data_range_text([JAN_1_2024_MS, JAN_1_2024_MS + 3_600_000], tz),
            "2024-01-01 00:00:00 → 2024-01-01 01:00:00",
        )

    def test_chart_placeholder(self):
        self.assertEqual(chart_placeholder_text([], []), "No telemetry history (last 24h).")
        self.assertEqual(chart_placeholder_text([1], []), "No numeric telemetry fields found to plot.")
        self.assertIsNone(chart_placeholder_text([1], ["temp"]))

    def test_field_chips_lock_at_cap(self):
        chips = field_chip_state(["a", "b", "c"], ["a", "b"], max_fields=2)
        self.assertEqual(
            chips,
            [
                {"key": "a", "selected": True, "disabled": False},
                {"key": "b", "selected": True, "disabled": False},
                {"key": "c", "selected": False, "disabled": True},
            ],
        )
        self.assertFalse(field_chip_state(["a", "b"], ["a"], max_fields=2)[1]["disabled"])


@unittest.skipIf(_IMPORT_ERROR is not None, f"UI state tests require pandas ({_IMPORT_ERROR})")
class ScheduleFormInputTests(unittest.TestCase):
    def test_form_from_inputs(self):
        form = form_from_inputs(
            name="Night",
            enabled=["enabled"],
            timezone=" UTC ",
            cron="0 0 * * * *",
            duration_sec=30,
            action_actuators=["pump", None],
            action_states=["ON", "OFF"],
            action_autos=[[], ["auto"]],
            end_actuators=[],
            end_states=[],
            end_autos=[],
        )
        self.assertTrue(form["enabled"])
        self.assertEqual(form["timezone"], "UTC")
        self.assertEqual(
            form["actions"],
            [
                {"actuator": "pump", "set": {"state": "ON", "auto": False}},
                {"actuator": "", "set": {"state": "OFF", "auto": True}},
            ],
        )
        self.assertEqual(form["end_actions"], [])

    def test_unchecked_enabled(self):
        form = form_from_inputs(
            name=None,
            enabled=[],
            timezone=None,
            cron=None,
            duration_sec=None,
            action_actuators=None,
            action_states=None,
            action_autos=None,
            end_actuators=None,
            end_states=None,
            end_autos=None,
        )
        self.assertFalse(form["enabled"])
        self.assertEqual(form["name"], "")
        self.assertEqual(form["actions"], [])


if __name__ == "__main__":
    unittest.main()
