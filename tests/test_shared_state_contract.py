import threading
import unittest

try:
    from config_loader import load_config
    from runtime.device_session import DeviceListMonitor
    from shared_state import read_session_logs, update_locked
    from thingsstring_console import build_api_client, build_initial_shared_data
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


@unittest.skipIf(_IMPORT_ERROR is not None, f"shared state tests require dash/requests ({_IMPORT_ERROR})")
class SharedStateContractTests(unittest.TestCase):
    def test_build_initial_shared_data_contains_required_runtime_keys(self):
        config = load_config("config.yaml")
        api = build_api_client(config)
        shared_data = build_initial_shared_data(config, api)

        required_keys = {
            "lock",
            "log_lock",
            "session_logs",
            "log_file_path",
            "shutdown_event",
            "api",
            "device_list_monitor",
            "active_device_session",
            "schedule_service",
        }
        self.assertTrue(required_keys.issubset(shared_data.keys()))
        self.assertIsInstance(shared_data["lock"], type(threading.Lock()))
        self.assertIsInstance(shared_data["shutdown_event"], threading.Event)
        self.assertIsInstance(shared_data["device_list_monitor"], DeviceListMonitor)
        self.assertIs(shared_data["api"], api)
        self.assertIsNone(shared_data["active_device_session"])
        self.assertFalse(shared_data["device_list_monitor"].poller.running)

    def test_api_client_keeps_preset_token_with_password(self):
        config = load_config("config.yaml")
        config["API_TOKEN"] = "preset"
        api = build_api_client(config, password="secret")
        self.assertTrue(api.is_authenticated())

        config["API_TOKEN"] = None
        self.assertFalse(build_api_client(config, password="secret").is_authenticated())

    def test_session_log_helpers(self):
        config = load_config("config.yaml")
        shared_data = build_initial_shared_data(config, build_api_client(config))
        shared_data["session_logs"].extend({"message": str(idx)} for idx in range(5))
        self.assertEqual([entry["message"] for entry in read_session_logs(shared_data, limit=2)], ["3", "4"])

        update_locked(shared_data, schedule_service="svc")
        self.assertEqual(shared_data["schedule_service"], "svc")


if __name__ == "__main__":
    unittest.main()
