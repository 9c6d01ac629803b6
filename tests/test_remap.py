import unittest

from frame_kit.remap import remap_bboxes, remap_ratio
from frame_kit.types import Bbox, ImgDimensions


class TestRemap(unittest.TestCase):
    def test_scales_each_axis(self) -> None:
        b = Bbox(xmin=80, ymin=90, xmax=120, ymax=110, class_id=0, detector_confidence=0.9)
        out = remap_bboxes([[b]], ImgDimensions(640, 360), ImgDimensions(1280, 720))
        self.assertEqual(out[0][0].as_xyxy(), (160.0, 180.0, 240.0, 220.0))
        # input untouched
        self.assertEqual(b.as_xyxy(), (80, 90, 120, 110))

    def test_round_trip(self) -> None:
        scaled = ImgDimensions(640.0, 359.0)
        original = ImgDimensions(1917.0, 1077.0)
        b = Bbox(xmin=13.3, ymin=7.1, xmax=400.9, ymax=358.0, class_id=1, detector_confidence=0.5)

        there = remap_bboxes([[], [b]], scaled, original)
        back = remap_bboxes(there, original, scaled)[1][0]
        for got, want in zip(back.as_xyxy(), b.as_xyxy()):
            self.assertAlmostEqual(got, want, delta=1e-3 * abs(want))

    def test_identity_and_metadata_preserved(self) -> None:
        b = Bbox(
            xmin=1,
            ymin=2,
            xmax=3,
            ymax=4,
            class_id=2,
            detector_confidence=0.7,
            tracker_confidence=0.6,
            tracker_id=42,
            data=[(1.0, 2.0)],
        )
        (out,) = remap_bboxes([[], [], [b]], ImgDimensions(10, 10), ImgDimensions(20, 40))[2]
        self.assertEqual(out.tracker_id, 42)
        self.assertEqual(out.class_id, 2)
        self.assertEqual(out.detector_confidence, 0.7)
        self.assertEqual(out.tracker_confidence, 0.6)
        self.assertEqual(out.data, [(1.0, 2.0)])
        self.assertIsNot(out.data, b.data)
        self.assertEqual(out.as_xyxy(), (2.0, 8.0, 6.0, 16.0))

    def test_empty_classes_kept(self) -> None:
        self.assertEqual(remap_bboxes([[], []], ImgDimensions(1, 1), ImgDimensions(2, 2)), [[], []])

    def test_zero_source_rejected(self) -> None:
        with self.assertRaises(ValueError):
            remap_ratio(ImgDimensions(0, 10), ImgDimensions(10, 10))


if __name__ == "__main__":
    unittest.main()
