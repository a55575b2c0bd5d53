import unittest
from zoneinfo import ZoneInfo

try:
    from dashboard.zoom import STATE_DRAGGING, STATE_IDLE, ZoomController, clamp_domain
    _IMPORT_ERROR = None
except ModuleNotFoundError as exc:  # pragma: no cover - environment-dependent test skip
    _IMPORT_ERROR = exc


JAN_1_2024_MS = 1_704_067_200_000


@unittest.skipIf(_IMPORT_ERROR is not None, f"zoom tests require pandas ({_IMPORT_ERROR})")
class ClampDomainTests(unittest.TestCase):
    def test_orders_pair(self):
        self.assertEqual(clamp_domain(30, 10), [10, 30])
        self.assertEqual(clamp_domain(10, 30), [10, 30])

    def test_discards_equal_or_non_finite(self):
        self.assertIsNone(clamp_domain(5, 5))
        self.assertIsNone(clamp_domain(None, 5))
        self.assertIsNone(clamp_domain(float("nan"), 5))
        self.assertIsNone(clamp_domain(1, float("inf")))
        self.assertIsNone(clamp_domain("1", 5))


@unittest.skipIf(_IMPORT_ERROR is not None, f"zoom tests require pandas ({_IMPORT_ERROR})")
class ZoomControllerDragTests(unittest.TestCase):
    def test_drag_commits_on_release(self):
        zoom = ZoomController("dev-1")
        zoom.pointer_down(300)
        self.assertEqual(zoom.state, STATE_DRAGGING)
        zoom.pointer_move(100)
        self.assertEqual(zoom.selection_band(), (300, 100))
        self.assertIsNone(zoom.committed_domain)

        self.assertEqual(zoom.pointer_up(), [100, 300])
        self.assertEqual(zoom.state, STATE_IDLE)
        self.assertIsNone(zoom.selection_band())

    def test_click_without_move_keeps_domain(self):
        zoom = ZoomController("dev-1")
        zoom.commit(10, 20)
        zoom.pointer_down(15)
        self.assertEqual(zoom.pointer_up(), [10, 20])

    def test_zero_width_drag_keeps_previous_domain(self):
        zoom = ZoomController("dev-1")
        zoom.commit(10, 20)
        zoom.pointer_down(15)
        zoom.pointer_move(15)
        self.assertEqual(zoom.pointer_up(), [10, 20])

    def test_move_without_press_is_ignored(self):
        zoom = ZoomController("dev-1")
        zoom.pointer_move(50)
        self.assertIsNone(zoom.selection_band())
        self.assertIsNone(zoom.pointer_up())


@unittest.skipIf(_IMPORT_ERROR is not None, f"zoom tests require pandas ({_IMPORT_ERROR})")
class ZoomControllerSliderTests(unittest.TestCase):
    def test_maps_indices_to_instants(self):
        zoom = ZoomController("dev-1")
        instants = [100, 200, 300, 400]
        self.assertEqual(zoom.slider_change(1, 3, instants), [200, 400])
        self.assertEqual(zoom.slider_change(3, 0, instants), [100, 400])

    def test_same_index_or_bad_index_leaves_domain(self):
        zoom = ZoomController("dev-1")
        instants = [100, 200, 300]
        zoom.slider_change(0, 1, instants)
        self.assertEqual(zoom.slider_change(2, 2, instants), [100, 200])
        self.assertEqual(zoom.slider_change(0, 9, instants), [100, 200])
        self.assertEqual(zoom.slider_change(None, 1, instants), [100, 200])

    def test_reset_and_device_change_clear_domain(self):
        zoom = ZoomController("dev-1")
        zoom.commit(1, 2)
        zoom.bind_device("dev-1")
        self.assertEqual(zoom.committed_domain, [1, 2])
        zoom.bind_device("dev-2")
        self.assertIsNone(zoom.committed_domain)
        self.assertEqual(zoom.device_id, "dev-2")

        zoom.commit(1, 2)
        zoom.reset()
        self.assertIsNone(zoom.committed_domain)


@unittest.skipIf(_IMPORT_ERROR is not None, f"zoom tests require pandas ({_IMPORT_ERROR})")
class ZoomControllerRelayoutTests(unittest.TestCase):
    def setUp(self):
        self.tz = ZoneInfo("UTC")

    def test_split_range_keys_commit_in_plot_timezone(self):
        zoom = ZoomController("dev-1")
        domain = zoom.apply_relayout(
            {"xaxis.range[0]": "2024-01-01 01:00:00", "xaxis.range[1]": "2024-01-01 00:00:00"},
            self.tz,
        )
        self.assertEqual(domain, [JAN_1_2024_MS, JAN_1_2024_MS + 3_600_000])

    def test_range_pair_in_other_timezone(self):
        zoom = ZoomController("dev-1")
        domain = zoom.apply_relayout(
            {"xaxis.range": ["2024-01-01 01:00:00", "2024-01-01 02:00:00"]},
            ZoneInfo("Europe/Madrid"),
        )
        self.assertEqual(domain, [JAN_1_2024_MS, JAN_1_2024_MS + 3_600_000])

    def test_autorange_resets(self):
        zoom = ZoomController("dev-1")
        zoom.commit(1, 2)
        self.assertIsNone(zoom.apply_relayout({"xaxis.autorange": True}, self.tz))

    def test_unrelated_events_are_ignored(self):
        zoom = ZoomController("dev-1")
        zoom.commit(1, 2)
        self.assertEqual(zoom.apply_relayout({"autosize": True}, self.tz), [1, 2])
        self.assertEqual(zoom.apply_relayout(None, self.tz), [1, 2])


if __name__ == "__main__":
    unittest.main()
