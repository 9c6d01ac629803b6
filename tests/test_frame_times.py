import unittest

from frame_kit.frame_times import AggregatedTimes, FrameTimer, FrameTimes


class TestAggregatedTimes(unittest.TestCase):
    def test_average(self) -> None:
        agg = AggregatedTimes()
        agg.push(FrameTimes.uniform(4000))
        agg.push(FrameTimes.uniform(8000))
        self.assertEqual(agg.average(ignore_first=False), FrameTimes.uniform(6000))

    def test_average_ignore_first(self) -> None:
        agg = AggregatedTimes()
        agg.push(FrameTimes.uniform(40000))
        agg.push(FrameTimes.uniform(200))
        self.assertEqual(agg.average(ignore_first=True), FrameTimes.uniform(200))
        self.assertEqual(len(agg), 2)

    def test_min_and_max_are_per_stage(self) -> None:
        f1 = FrameTimes.uniform(600)
        f1.forward_pass = 5000
        f1.bbox_extraction = 200
        f1.nms = 300

        f2 = FrameTimes.uniform(900)
        f2.frame_to_buffer = 100
        f2.forward_pass = 499

        f3 = FrameTimes.uniform(500)

        agg = AggregatedTimes()
        for ft in (f1, f2, f3):
            agg.push(ft)

        min_tgt = FrameTimes.uniform(500)
        min_tgt.frame_to_buffer = 100
        min_tgt.forward_pass = 499
        min_tgt.bbox_extraction = 200
        min_tgt.nms = 300
        self.assertEqual(agg.min(ignore_first=False), min_tgt)

        max_tgt = FrameTimes.uniform(900)
        max_tgt.frame_to_buffer = 600
        max_tgt.forward_pass = 5000
        self.assertEqual(agg.max(ignore_first=False), max_tgt)

    def test_empty_returns_zero_record(self) -> None:
        agg = AggregatedTimes()
        self.assertEqual(agg.average(), FrameTimes())
        self.assertEqual(agg.min(), FrameTimes())
        self.assertEqual(agg.max(), FrameTimes())

        agg.push(FrameTimes.uniform(10))
        self.assertEqual(agg.average(ignore_first=True), FrameTimes())
        self.assertEqual(agg.min(ignore_first=True), FrameTimes())
        self.assertEqual(agg.max(ignore_first=True), FrameTimes())

    def test_total_is_sum_of_aggregated_stages(self) -> None:
        f1 = FrameTimes.uniform(1)
        f1.forward_pass = 10
        f2 = FrameTimes.uniform(3)
        agg = AggregatedTimes()
        agg.push(f1)
        agg.push(f2)
        mn = agg.min()
        # min of forward_pass (3) comes from f2, every other stage (1) from f1
        self.assertEqual(mn.forward_pass, 3)
        self.assertEqual(mn.total, 3 + 1 * (len(FrameTimes.stage_names()) - 1))


class TestFrameTimer(unittest.TestCase):
    def test_records_elapsed_ms(self) -> None:
        ticks = iter([1.0, 1.25])
        ft = FrameTimes()
        with FrameTimer(ft, "nms", clock=lambda: next(ticks)):
            pass
        self.assertAlmostEqual(ft.nms, 250.0)
        self.assertEqual(ft.forward_pass, 0.0)

    def test_records_even_when_block_raises(self) -> None:
        ticks = iter([0.0, 0.5])
        ft = FrameTimes()
        with self.assertRaises(RuntimeError):
            with FrameTimer(ft, "tracking", clock=lambda: next(ticks)):
                raise RuntimeError("boom")
        self.assertAlmostEqual(ft.tracking, 500.0)

    def test_timed_helper(self) -> None:
        ft = FrameTimes()
        with ft.timed("annotation"):
            pass
        self.assertGreaterEqual(ft.annotation, 0.0)

    def test_exit_without_enter(self) -> None:
        timer = FrameTimer(FrameTimes(), "nms")
        with self.assertRaises(RuntimeError):
            timer.__exit__(None, None, None)

    def test_unknown_stage_rejected(self) -> None:
        with self.assertRaises(ValueError):
            FrameTimer(FrameTimes(), "not_a_stage")

    def test_add_and_describe(self) -> None:
        ft = FrameTimes.uniform(1) + FrameTimes.uniform(2)
        self.assertEqual(ft, FrameTimes.uniform(3))
        self.assertIn("total: ", ft.describe())
        self.assertIn("forward_pass: 3.00ms", ft.describe())


if __name__ == "__main__":
    unittest.main()
