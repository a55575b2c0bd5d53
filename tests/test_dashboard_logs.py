import unittest

try:
    from dash import html

    from dashboard.logs import format_session_logs, log_file_label
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


@unittest.skipIf(_IMPORT_ERROR is not None, f"log view tests require dash ({_IMPORT_ERROR})")
class DashboardLogsTests(unittest.TestCase):
    def test_format_session_logs_keeps_order_and_levels(self):
        entries = [
            {"timestamp": "14:04:51", "level": "INFO", "message": "Poller device-list started (period 10.0s)."},
            {"timestamp": "14:04:52", "level": "warning", "message": "Schedules: refresh failed"},
            {"timestamp": "14:04:53", "level": "ERROR", "message": "Actuator control: pump command failed"},
        ]

        formatted = format_session_logs(entries)

        self.assertEqual(len(formatted), 3)
        self.assertIsInstance(formatted[0], html.Div)
        self.assertEqual(formatted[0].children[0].children, "[14:04:51] ")
        self.assertEqual(formatted[1].children[1].children, "WARNING: ")
        self.assertEqual(formatted[2].children[2].children, "Actuator control: pump command failed")

    def test_empty_entries(self):
        self.assertEqual(format_session_logs(None), [])

    def test_log_file_label(self):
        self.assertEqual(log_file_label("/tmp/logs/2024-01-01_thingsstring.log"), "File: /tmp/logs/2024-01-01_thingsstring.log")
        self.assertEqual(log_file_label(None), "File: -")


if __name__ == "__main__":
    unittest.main()
