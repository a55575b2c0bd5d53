import unittest

try:
    from telemetry.timestamps import object_id_to_ms, resolve_snapshot_ms
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


JAN_1_2024_MS = 1_704_067_200_000


@unittest.skipIf(_IMPORT_ERROR is not None, f"timestamp tests require pandas ({_IMPORT_ERROR})")
class ObjectIdTests(unittest.TestCase):
    def test_decodes_leading_hex_seconds(self):
        self.assertEqual(object_id_to_ms("000003e8" + "0" * 16), 1_000_000)
        self.assertEqual(object_id_to_ms("659200800000000000000000"), JAN_1_2024_MS)

    def test_short_or_non_hex_ids_are_unknown(self):
        self.assertIsNone(object_id_to_ms("abc"))
        self.assertIsNone(object_id_to_ms("zzzzzzzz0000"))
        self.assertIsNone(object_id_to_ms("6592008g" + "0" * 16))
        self.assertIsNone(object_id_to_ms(None))
        self.assertIsNone(object_id_to_ms(12345678))


@unittest.skipIf(_IMPORT_ERROR is not None, f"timestamp tests require pandas ({_IMPORT_ERROR})")
class ResolveSnapshotTests(unittest.TestCase):
    def test_updated_at_wins_over_later_fields(self):
        snapshot = {
            "updatedAt": "2024-01-01T00:00:00Z",
            "createdAt": "2023-01-01T00:00:00Z",
            "ts": 5,
        }
        self.assertEqual(resolve_snapshot_ms(snapshot), JAN_1_2024_MS)

    def test_numbers_are_epoch_milliseconds(self):
        self.assertEqual(resolve_snapshot_ms({"ts": JAN_1_2024_MS}), JAN_1_2024_MS)
        self.assertEqual(resolve_snapshot_ms({"timestamp": 1500.0}), 1500)

    def test_naive_strings_are_utc(self):
        self.assertEqual(resolve_snapshot_ms({"createdAt": "2024-01-01T00:00:00"}), JAN_1_2024_MS)

    def test_unparseable_field_falls_through_to_next(self):
        snapshot = {"updatedAt": "not a date", "createdAt": "2024-01-01T00:00:00Z"}
        self.assertEqual(resolve_snapshot_ms(snapshot), JAN_1_2024_MS)

    def test_blank_and_boolean_values_are_skipped(self):
        snapshot = {"updatedAt": "", "createdAt": True, "ts": 42}
        self.assertEqual(resolve_snapshot_ms(snapshot), 42)

    def test_falls_back_to_object_id(self):
        self.assertEqual(resolve_snapshot_ms({"_id": "659200800000000000000000"}), JAN_1_2024_MS)

    def test_unknown_when_nothing_resolves(self):
        self.assertIsNone(resolve_snapshot_ms({}))
        self.assertIsNone(resolve_snapshot_ms({"_id": "nothex"}))
        self.assertIsNone(resolve_snapshot_ms(None))
        self.assertIsNone(resolve_snapshot_ms(["ts", 1]))


if __name__ == "__main__":
    unittest.main()
