import unittest

try:
    from control.actuators import actuator_auto, actuator_desired_state, actuator_live_state, build_control_payload
    from control.reconciler import (
        EVENT_COMMAND_FAILED,
        EVENT_OPTIMISTIC_PATCH,
        EVENT_POLL_RECEIVED,
        MANUAL_REQUIRED_MESSAGE,
        SYNC_CONFIRMED,
        SYNC_FAILED_STALE,
        SYNC_PENDING_OPTIMISTIC,
        ActuatorReconciler,
        default_device_state,
        reduce_device_state,
    )
    from thingsstring_api import ThingsStringAPIError
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


def _device(auto=False, state="OFF", live="OFF"):
    return {
        "deviceId": "dev-1",
        "control": {"actuators": {"pump": {"type": "relay", "auto": auto, "state": state}}},
        "last_telemetry": {"ts": 1, "actuators": {"pump": live}},
    }


class _RecordingSender:
    def __init__(self, error=None, on_send=None):
        self.calls = []
        self.error = error
        self.on_send = on_send

    def __call__(self, device_id, payload):
        self.calls.append((device_id, payload))
        if self.on_send is not None:
            self.on_send()
        if self.error is not None:
            raise self.error
        return {"ok": True}


@unittest.skipIf(_IMPORT_ERROR is not None, f"reconciler tests require requests ({_IMPORT_ERROR})")
class ActuatorReaderTests(unittest.TestCase):
    def test_top_level_auto_wins_over_default(self):
        self.assertTrue(actuator_auto({"auto": True, "default": {"auto": False}}))
        self.assertTrue(actuator_auto({"default": {"auto": True}}))
        self.assertFalse(actuator_auto({}))
        self.assertFalse(actuator_auto(None))

    def test_desired_state_prefers_default_block(self):
        self.assertEqual(actuator_desired_state({"state": "OFF", "default": {"state": "ON"}}), "ON")
        self.assertEqual(actuator_desired_state({"state": "ON"}), "ON")
        self.assertEqual(actuator_desired_state({}), "OFF")

    def test_live_state_prefers_reported_telemetry(self):
        self.assertEqual(actuator_live_state("pump", {"pump": "ON"}, {"state": "OFF"}), "ON")
        self.assertEqual(actuator_live_state("pump", {}, {"state": "IDLE"}), "IDLE")
        self.assertEqual(actuator_live_state("pump", None, {"default": {"state": "ON"}}), "ON")
        self.assertEqual(actuator_live_state("pump", None, None), "OFF")

    def test_payload_mirrors_flat_and_default_fields(self):
        payload = build_control_payload("pump", auto=False, state="ON", actuator_type="relay")
        self.assertEqual(
            payload,
            {
                "actuators": {
                    "pump": {
                        "type": "relay",
                        "auto": False,
                        "state": "ON",
                        "default": {"auto": False, "state": "ON"},
                    }
                }
            },
        )
        self.assertNotIn("type", build_control_payload("pump", auto=True, state="OFF")["actuators"]["pump"])


@unittest.skipIf(_IMPORT_ERROR is not None, f"reconciler tests require requests ({_IMPORT_ERROR})")
class ReduceDeviceStateTests(unittest.TestCase):
    def test_poll_replaces_device_and_clears_overlays(self):
        state = reduce_device_state(
            default_device_state(),
            {"type": EVENT_OPTIMISTIC_PATCH, "actuator": "pump", "state": "ON"},
        )
        self.assertEqual(state["sync_by_actuator"]["pump"], SYNC_PENDING_OPTIMISTIC)

        polled = reduce_device_state(state, {"type": EVENT_POLL_RECEIVED, "device": _device()})
        self.assertEqual(polled["overlay_by_actuator"], {})
        self.assertEqual(polled["sync_by_actuator"], {"pump": SYNC_CONFIRMED})

    def test_failure_keeps_overlay_and_marks_stale(self):
        state = reduce_device_state(
            default_device_state(),
            {"type": EVENT_OPTIMISTIC_PATCH, "actuator": "pump", "state": "ON"},
        )
        failed = reduce_device_state(state, {"type": EVENT_COMMAND_FAILED, "actuator": "pump", "error": "boom"})
        self.assertEqual(failed["overlay_by_actuator"]["pump"], {"state": "ON"})
        self.assertEqual(failed["sync_by_actuator"]["pump"], SYNC_FAILED_STALE)
        self.assertEqual(failed["last_error_by_actuator"]["pump"], "boom")

    def test_input_state_is_not_mutated(self):
        state = default_device_state()
        reduce_device_state(state, {"type": EVENT_OPTIMISTIC_PATCH, "actuator": "pump", "auto": True})
        self.assertEqual(state, default_device_state())

    def test_unknown_event_raises(self):
        with self.assertRaises(ValueError):
            reduce_device_state(default_device_state(), {"type": "bogus"})


@unittest.skipIf(_IMPORT_ERROR is not None, f"reconciler tests require requests ({_IMPORT_ERROR})")
class ActuatorReconcilerTests(unittest.TestCase):
    def test_set_state_in_auto_is_refused_without_request(self):
        sender = _RecordingSender()
        reconciler = ActuatorReconciler("dev-1", sender)
        reconciler.apply_poll(_device(auto=True))

        result = reconciler.set_state("pump", "ON")

        self.assertEqual(result, {"status": "rejected", "message": MANUAL_REQUIRED_MESSAGE})
        self.assertEqual(sender.calls, [])
        self.assertEqual(reconciler.message, MANUAL_REQUIRED_MESSAGE)
        self.assertEqual(reconciler.actuator_view("pump")["live_state"], "OFF")

    def test_set_state_is_optimistic_and_sends_one_request(self):
        sender = _RecordingSender()
        reconciler = ActuatorReconciler("dev-1", sender)
        reconciler.apply_poll(_device())

        result = reconciler.set_state("pump", "ON")

        self.assertEqual(result["status"], "sent")
        self.assertEqual(len(sender.calls), 1)
        device_id, payload = sender.calls[0]
        self.assertEqual(device_id, "dev-1")
        self.assertEqual(payload["actuators"]["pump"]["state"], "ON")
        self.assertFalse(payload["actuators"]["pump"]["auto"])
        self.assertEqual(payload["actuators"]["pump"]["type"], "relay")

        view = reconciler.actuator_view("pump")
        self.assertEqual(view["live_state"], "ON")
        self.assertEqual(view["desired_state"], "ON")
        self.assertEqual(view["sync"], SYNC_PENDING_OPTIMISTIC)
        self.assertFalse(view["busy"])

    def test_actuator_is_busy_while_request_is_in_flight(self):
        seen = []
        reconciler = ActuatorReconciler("dev-1", None)
        reconciler._send_control = _RecordingSender(on_send=lambda: seen.append(reconciler.is_busy("pump")))
        reconciler.apply_poll(_device())

        reconciler.set_state("pump", "ON")

        self.assertEqual(seen, [True])
        self.assertFalse(reconciler.is_busy("pump"))

    def test_command_while_busy_is_noop(self):
        sender = _RecordingSender()
        reconciler = ActuatorReconciler("dev-1", sender)
        reconciler.apply_poll(_device())
        reconciler._busy.add("pump")

        self.assertEqual(reconciler.set_state("pump", "ON")["status"], "busy")
        self.assertEqual(reconciler.toggle_mode("pump")["status"], "busy")
        self.assertEqual(sender.calls, [])

    def test_failure_reports_message_and_keeps_stale_overlay(self):
        sender = _RecordingSender(error=ThingsStringAPIError("device offline"))
        reconciler = ActuatorReconciler("dev-1", sender)
        reconciler.apply_poll(_device())

        result = reconciler.set_state("pump", "ON")

        self.assertEqual(result["status"], "failed")
        self.assertEqual(result["message"], "Command failed: device offline")
        self.assertEqual(reconciler.message, "Command failed: device offline")
        view = reconciler.actuator_view("pump")
        self.assertEqual(view["live_state"], "ON")
        self.assertEqual(view["sync"], SYNC_FAILED_STALE)
        self.assertFalse(view["busy"])

        reconciler.apply_poll(_device(live="OFF"))
        view = reconciler.actuator_view("pump")
        self.assertEqual(view["live_state"], "OFF")
        self.assertEqual(view["sync"], SYNC_CONFIRMED)

    def test_failure_after_poll_in_flight_stays_confirmed(self):
        reconciler = ActuatorReconciler("dev-1", None)
        reconciler._send_control = _RecordingSender(
            error=ThingsStringAPIError("boom"),
            on_send=lambda: reconciler.apply_poll(_device(state="OFF", live="OFF")),
        )
        reconciler.apply_poll(_device())

        result = reconciler.set_state("pump", "ON")

        self.assertEqual(result["status"], "failed")
        view = reconciler.actuator_view("pump")
        self.assertEqual(view["live_state"], "OFF")
        self.assertEqual(view["desired_state"], "OFF")
        self.assertEqual(view["sync"], SYNC_CONFIRMED)
        self.assertIsNone(view["last_error"])

    def test_failure_without_overlay_is_ignored_by_reducer(self):
        polled = reduce_device_state(default_device_state(), {"type": EVENT_POLL_RECEIVED, "device": _device()})
        failed = reduce_device_state(polled, {"type": EVENT_COMMAND_FAILED, "actuator": "pump", "error": "boom"})
        self.assertEqual(failed["sync_by_actuator"], {"pump": SYNC_CONFIRMED})
        self.assertEqual(failed["last_error_by_actuator"], {})

    def test_toggle_to_manual_then_set_state_sends_both(self):
        sender = _RecordingSender()
        reconciler = ActuatorReconciler("dev-1", sender)
        reconciler.apply_poll(_device(auto=True, state="OFF", live="OFF"))

        self.assertEqual(reconciler.toggle_mode("pump")["status"], "sent")
        result = reconciler.set_state("pump", "ON")

        self.assertEqual(result["status"], "sent")
        self.assertEqual(len(sender.calls), 2)
        body = sender.calls[1][1]["actuators"]["pump"]
        self.assertFalse(body["auto"])
        self.assertEqual(body["state"], "ON")
        self.assertEqual(body["default"], {"auto": False, "state": "ON"})
        self.assertEqual(reconciler.actuator_view("pump")["mode"], "MANUAL")

    def test_toggle_mode_keeps_live_state(self):
        sender = _RecordingSender()
        reconciler = ActuatorReconciler("dev-1", sender)
        reconciler.apply_poll(_device(auto=False, state="OFF", live="ON"))

        reconciler.toggle_mode("pump")

        body = sender.calls[0][1]["actuators"]["pump"]
        self.assertTrue(body["auto"])
        self.assertEqual(body["state"], "ON")
        self.assertEqual(body["default"], {"auto": True, "state": "ON"})
        self.assertEqual(reconciler.actuator_view("pump")["mode"], "AUTO")

    def test_actuator_views_follow_control_document(self):
        reconciler = ActuatorReconciler("dev-1", _RecordingSender())
        self.assertEqual(reconciler.actuator_views(), [])
        reconciler.apply_poll(_device())
        self.assertEqual([view["key"] for view in reconciler.actuator_views()], ["pump"])
        self.assertEqual(reconciler.device["deviceId"], "dev-1")


if __name__ == "__main__":
    unittest.main()
