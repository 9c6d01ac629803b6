from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import MalformedPredictionError
from .types import Bbox, BboxesPerClass, ImgDimensions, empty_per_class

logger = logging.getLogger(__name__)


@dataclass
class ParserConfig:
    """
    Configuration for turning raw detector output into boxes.
    """

    conf_threshold: float = 0.25
    # Expected taxonomy size; None accepts whatever the tensor carries.
    num_classes: Optional[int] = None

    def __post_init__(self) -> None:
        if not (0.0 <= self.conf_threshold <= 1.0):
            raise ValueError("conf_threshold must be within [0, 1]")
        if self.num_classes is not None and self.num_classes <= 0:
            raise ValueError("num_classes must be > 0")


class PredictionParser:
    """
    Parse anchor-layout detector output into per-class boxes.

    Supported layout (per frame): (1, 4 + C, N), i.e. 84 x 8400 for a COCO
    YOLOv8 export. Rows 0..3 hold cx, cy, w, h on the model canvas; the
    remaining C rows hold class scores. No NMS is applied here and boxes come
    out in anchor-scan order.
    """

    def __init__(self, cfg: ParserConfig = ParserConfig()):
        self.cfg = cfg

    def parse(self, preds: np.ndarray, canvas_dims: ImgDimensions) -> BboxesPerClass:
        p = self._check_shape(preds)
        num_classes = p.shape[0] - 4
        out = empty_per_class(num_classes)

        boxes_xyxy, scores, class_ids = self._decode(p, canvas_dims)
        for (x1, y1, x2, y2), score, cls_id in zip(boxes_xyxy, scores, class_ids):
            out[int(cls_id)].append(
                Bbox(
                    xmin=float(x1),
                    ymin=float(y1),
                    xmax=float(x2),
                    ymax=float(y2),
                    class_id=int(cls_id),
                    detector_confidence=float(score),
                )
            )
        logger.debug("parsed %d boxes from %d anchors", len(scores), p.shape[1])
        return out

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _check_shape(self, preds: np.ndarray) -> np.ndarray:
        p = np.asarray(preds)
        if p.ndim != 3:
            raise MalformedPredictionError(f"Expected (1, 4 + C, N) predictions, got shape {p.shape}.")
        if p.shape[0] != 1:
            raise MalformedPredictionError(f"Batch > 1 is not supported (got shape {p.shape}).")
        p = p[0]
        if p.shape[0] < 5:
            raise MalformedPredictionError(f"Need 4 box rows plus at least one class row, got shape {preds.shape}.")
        if self.cfg.num_classes is not None and p.shape[0] != 4 + self.cfg.num_classes:
            raise MalformedPredictionError(
                f"Predictions carry {p.shape[0] - 4} classes, taxonomy has {self.cfg.num_classes}."
            )
        return p.astype(np.float32, copy=False)

    def _decode(self, p: np.ndarray, canvas_dims: ImgDimensions) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Decode (4 + C, N) into clamped xyxy boxes, scores and class ids for the anchors
        passing the confidence threshold.
        """

        class_scores = p[4:, :]
        # argmax returns the first index on ties
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(class_scores.shape[1])]

        keep = scores >= self.cfg.conf_threshold
        cx, cy, w_box, h_box = p[0:4, keep]
        scores, class_ids = scores[keep], class_ids[keep]

        x1 = cx - w_box / 2
        y1 = cy - h_box / 2
        x2 = x1 + w_box
        y2 = y1 + h_box
        boxes_xyxy = np.stack([x1, y1, x2, y2], axis=1)

        # Boxes leaving the canvas are truncated, not dropped.
        boxes_xyxy[:, [0, 2]] = np.clip(boxes_xyxy[:, [0, 2]], 0.0, canvas_dims.width)
        boxes_xyxy[:, [1, 3]] = np.clip(boxes_xyxy[:, [1, 3]], 0.0, canvas_dims.height)

        valid = (boxes_xyxy[:, 2] > boxes_xyxy[:, 0]) & (boxes_xyxy[:, 3] > boxes_xyxy[:, 1])
        return boxes_xyxy[valid], scores[valid], class_ids[valid]


def parse_predictions(
    preds: np.ndarray,
    canvas_dims: ImgDimensions,
    conf_threshold: float = 0.25,
    num_classes: Optional[int] = None,
) -> BboxesPerClass:
    return PredictionParser(ParserConfig(conf_threshold=conf_threshold, num_classes=num_classes)).parse(
        preds, canvas_dims
    )
