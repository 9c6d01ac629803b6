import unittest

import numpy as np

from frame_kit.types import Bbox, ImgDimensions
from frame_kit.visualize import BOX_COLOR, annotate_image, legend_text


class TestAnnotateImage(unittest.TestCase):
    def test_box_drawn_at_frame_position(self) -> None:
        image = np.zeros((720, 1280, 3), dtype=np.uint8)
        box = Bbox(xmin=80, ymin=90, xmax=120, ymax=110, class_id=0, detector_confidence=0.9)

        out = annotate_image(image, ImgDimensions(640, 360), 0, [[box]])

        # scaled space (80, 90, 120, 110) lands on (160, 180, 240, 220) in the frame
        self.assertEqual(out[180, 200].tolist(), list(BOX_COLOR))
        self.assertEqual(out[220, 200].tolist(), list(BOX_COLOR))
        self.assertEqual(out[200, 160].tolist(), list(BOX_COLOR))
        self.assertEqual(out[200, 240].tolist(), list(BOX_COLOR))
        self.assertEqual(out[200, 200].tolist(), [0, 0, 0])
        self.assertEqual(out[90, 100].tolist(), [0, 0, 0])
        self.assertTrue(np.all(image == 0))

    def test_legend_strip_drawn_inside_box(self) -> None:
        image = np.zeros((720, 1280, 3), dtype=np.uint8)
        box = Bbox(xmin=80, ymin=90, xmax=120, ymax=110, class_id=0, detector_confidence=0.9)

        plain = annotate_image(image, ImgDimensions(640, 360), 0, [[box]])
        with_legend = annotate_image(image, ImgDimensions(640, 360), 14, [[box]])

        self.assertTrue(np.all(plain[182:194, 162:239] == 0))
        self.assertTrue(np.any(with_legend[182:194, 162:239] != 0))
        # nothing below the strip
        self.assertTrue(np.all(with_legend[196:219, 162:239] == 0))

    def test_legend_text(self) -> None:
        tracked = Bbox(
            xmin=0,
            ymin=0,
            xmax=1,
            ymax=1,
            class_id=1,
            detector_confidence=0.9,
            tracker_confidence=0.6,
            tracker_id=7,
        )
        self.assertEqual(legend_text(tracked, {0: "person", 1: "forklift"}), "forklift 7 90% 60%")

        untracked = Bbox(xmin=0, ymin=0, xmax=1, ymax=1, class_id=0, detector_confidence=0.42)
        self.assertEqual(legend_text(untracked), "0 - 42% 0%")


if __name__ == "__main__":
    unittest.main()
