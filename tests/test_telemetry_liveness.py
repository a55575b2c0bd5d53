import math
import unittest

try:
    from telemetry.liveness import estimate_liveness, seconds_ago
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


def _device(ts):
    return {"deviceId": "dev-1", "last_telemetry": {"ts": ts}}


@unittest.skipIf(_IMPORT_ERROR is not None, f"liveness tests require pandas ({_IMPORT_ERROR})")
class EstimateLivenessTests(unittest.TestCase):
    def test_online_up_to_and_including_threshold(self):
        status = estimate_liveness(_device(1_000), max_age_ms=60_000, now_ms=61_000)
        self.assertEqual(status, {"online": True, "last_seen_ms": 1_000, "age_ms": 60_000})

    def test_offline_past_threshold(self):
        status = estimate_liveness(_device(1_000), max_age_ms=60_000, now_ms=61_001)
        self.assertFalse(status["online"])
        self.assertEqual(status["age_ms"], 60_001)

    def test_unknown_instant_is_offline_with_infinite_age(self):
        for device in ({}, {"last_telemetry": None}, {"last_telemetry": {"value": 3}}, None):
            status = estimate_liveness(device, now_ms=10)
            self.assertFalse(status["online"])
            self.assertIsNone(status["last_seen_ms"])
            self.assertTrue(math.isinf(status["age_ms"]))

    def test_future_instant_gives_negative_age_and_online(self):
        status = estimate_liveness(_device(5_000), max_age_ms=60_000, now_ms=1_000)
        self.assertTrue(status["online"])
        self.assertEqual(status["age_ms"], -4_000)


@unittest.skipIf(_IMPORT_ERROR is not None, f"liveness tests require pandas ({_IMPORT_ERROR})")
class SecondsAgoTests(unittest.TestCase):
    def test_rounds_half_up(self):
        self.assertEqual(seconds_ago(1_000, now_ms=3_500), 3)
        self.assertEqual(seconds_ago(1_000, now_ms=3_499), 2)

    def test_unknown_is_none(self):
        self.assertIsNone(seconds_ago(None, now_ms=1_000))


if __name__ == "__main__":
    unittest.main()
