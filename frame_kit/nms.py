from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .types import Bbox, BboxesPerClass


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45

    def __post_init__(self) -> None:
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within [0, 1]")


def iou(a: Bbox, b: Bbox) -> float:
    """
    Intersection over union of two boxes; 0 when they do not overlap.
    """

    w = min(a.xmax, b.xmax) - max(a.xmin, b.xmin)
    h = min(a.ymax, b.ymax) - max(a.ymin, b.ymin)
    if w <= 0.0 or h <= 0.0:
        return 0.0
    inter = w * h
    union = a.area + b.area - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first. Equal scores keep
    their input order.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = (x2 - x1) * (y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        i = order[0]
        keep.append(int(i))

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        overlap = np.where(union > 0.0, inter / np.maximum(union, 1e-12), 0.0)

        inds = np.where(overlap <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int64)


def _nms_class(bboxes: Sequence[Bbox], cfg: NMSConfig) -> List[Bbox]:
    if not bboxes:
        return []
    boxes = np.array([b.as_xyxy() for b in bboxes], dtype=np.float64)
    scores = np.array([b.detector_confidence for b in bboxes], dtype=np.float64)
    return [bboxes[i] for i in nms(boxes, scores, cfg)]


def non_maximum_suppression(bboxes: BboxesPerClass, iou_threshold: float = 0.45) -> BboxesPerClass:
    """
    Per-class NMS: boxes are only ever suppressed by boxes of their own class.
    Returns new lists; each class comes out sorted by detector confidence.
    """

    cfg = NMSConfig(iou_threshold=iou_threshold)
    return [_nms_class(class_boxes, cfg) for class_boxes in bboxes]
