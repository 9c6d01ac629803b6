import unittest
from dataclasses import fields

import numpy as np

from frame_kit.nms import NMSConfig, iou, nms, non_maximum_suppression
from frame_kit.types import Bbox


def _box(x1, y1, x2, y2, conf, cls=0) -> Bbox:
    return Bbox(xmin=x1, ymin=y1, xmax=x2, ymax=y2, class_id=cls, detector_confidence=conf)


class TestIou(unittest.TestCase):
    def test_identical_boxes(self) -> None:
        a = _box(0, 0, 10, 10, 0.9)
        self.assertAlmostEqual(iou(a, a), 1.0)

    def test_disjoint_and_touching_boxes(self) -> None:
        a = _box(0, 0, 10, 10, 0.9)
        self.assertEqual(iou(a, _box(20, 20, 30, 30, 0.9)), 0.0)
        self.assertEqual(iou(a, _box(10, 0, 20, 10, 0.9)), 0.0)

    def test_partial_overlap(self) -> None:
        a = _box(0, 0, 10, 10, 0.9)
        b = _box(5, 0, 15, 10, 0.9)
        # inter 50, union 150
        self.assertAlmostEqual(iou(a, b), 1.0 / 3.0)


class TestNonMaximumSuppression(unittest.TestCase):
    def test_same_class_full_overlap_keeps_higher_confidence(self) -> None:
        low = _box(10, 10, 50, 50, 0.6)
        high = _box(10, 10, 50, 50, 0.9)
        out = non_maximum_suppression([[low, high]], iou_threshold=0.5)
        self.assertEqual(out, [[high]])

    def test_different_classes_are_never_suppressed(self) -> None:
        a = _box(10, 10, 50, 50, 0.9, cls=0)
        b = _box(10, 10, 50, 50, 0.6, cls=1)
        out = non_maximum_suppression([[a], [b]], iou_threshold=0.5)
        self.assertEqual(out, [[a], [b]])

    def test_output_sorted_by_confidence(self) -> None:
        boxes = [
            _box(0, 0, 10, 10, 0.3),
            _box(100, 100, 110, 110, 0.9),
            _box(200, 200, 210, 210, 0.6),
        ]
        out = non_maximum_suppression([boxes], iou_threshold=0.5)
        self.assertEqual([b.detector_confidence for b in out[0]], [0.9, 0.6, 0.3])

    def test_threshold_is_exclusive(self) -> None:
        # IoU exactly 1/3: kept at threshold 1/3, suppressed just below it
        a = _box(0, 0, 10, 10, 0.9)
        b = _box(5, 0, 15, 10, 0.8)
        self.assertEqual(len(non_maximum_suppression([[a, b]], iou_threshold=0.34)[0]), 2)
        self.assertEqual(len(non_maximum_suppression([[a, b]], iou_threshold=0.3)[0]), 1)

    def test_suppressed_box_does_not_suppress_others(self) -> None:
        # b overlaps a and c; a wins over b, so c survives even though it overlaps b
        a = _box(0, 0, 10, 10, 0.9)
        b = _box(4, 0, 14, 10, 0.8)
        c = _box(8, 0, 18, 10, 0.7)
        out = non_maximum_suppression([[a, b, c]], iou_threshold=0.4)
        self.assertEqual(out[0], [a, c])

    def test_idempotent(self) -> None:
        rng = np.random.default_rng(7)
        boxes = []
        for _ in range(40):
            x, y = rng.uniform(0, 200, size=2)
            w, h = rng.uniform(5, 60, size=2)
            boxes.append(_box(float(x), float(y), float(x + w), float(y + h), float(rng.uniform(0.3, 1.0)), cls=int(rng.integers(0, 3))))
        per_class = [[b for b in boxes if b.class_id == c] for c in range(3)]

        once = non_maximum_suppression(per_class, iou_threshold=0.45)
        twice = non_maximum_suppression(once, iou_threshold=0.45)
        self.assertEqual(once, twice)

    def test_ties_keep_input_order(self) -> None:
        first = _box(0, 0, 10, 10, 0.5)
        second = _box(0, 0, 10, 10, 0.5)
        second.data.append("marker")
        out = non_maximum_suppression([[first, second]], iou_threshold=0.5)
        self.assertEqual(len(out[0]), 1)
        self.assertIs(out[0][0], first)

    def test_empty_classes(self) -> None:
        self.assertEqual(non_maximum_suppression([[], []], iou_threshold=0.5), [[], []])


class TestNumpyNms(unittest.TestCase):
    def test_indices_highest_score_first(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [1, 1, 11, 11], [50, 50, 60, 60]], dtype=np.float32)
        scores = np.array([0.8, 0.9, 0.7], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [1, 2])

    def test_empty(self) -> None:
        keep = nms(np.zeros((0, 4), dtype=np.float32), np.zeros((0,), dtype=np.float32), NMSConfig())
        self.assertEqual(keep.shape, (0,))

    def test_invalid_threshold(self) -> None:
        with self.assertRaises(ValueError):
            NMSConfig(iou_threshold=1.5)

    def test_config_has_no_detection_cap(self) -> None:
        # every survivor is kept; no per-class cap is applied
        self.assertEqual([f.name for f in fields(NMSConfig)], ["iou_threshold"])


if __name__ == "__main__":
    unittest.main()
