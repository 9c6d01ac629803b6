from __future__ import annotations

from typing import Mapping, Optional, Tuple

import numpy as np

from .letterbox import check_rgb_image
from .metadata import class_label
from .remap import remap_bboxes
from .types import Bbox, BboxesPerClass, ImgDimensions

BOX_COLOR: Tuple[int, int, int] = (255, 0, 0)
LEGEND_COLOR: Tuple[int, int, int] = (170, 0, 0)
TEXT_COLOR: Tuple[int, int, int] = (255, 255, 255)

# HERSHEY_SIMPLEX glyphs are roughly this many pixels tall at scale 1.0
_HERSHEY_PX = 22.0


def legend_text(b: Bbox, class_names: Optional[Mapping[int, str]] = None) -> str:
    label = class_label(class_names, b.class_id) if class_names else str(b.class_id)
    track = "-" if b.tracker_id is None else str(b.tracker_id)
    return f"{label} {track} {100.0 * b.detector_confidence:.0f}% {100.0 * b.tracker_confidence:.0f}%"


def draw_bboxes(
    image_rgb: np.ndarray,
    bboxes: BboxesPerClass,
    *,
    legend_size: int = 14,
    class_names: Optional[Mapping[int, str]] = None,
    box_thickness: int = 1,
) -> np.ndarray:
    """
    Draw boxes (already in the image's pixel space) on an RGB image and return a copy.

    With `legend_size > 0` a filled strip of that height is drawn at the top of each
    box carrying the class, track id and detector/tracker confidences.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_bboxes(). Install with `pip install opencv-python`.") from e

    check_rgb_image(image_rgb)

    out = np.ascontiguousarray(image_rgb.copy())
    h, w = out.shape[:2]
    font_scale = max(legend_size - 1, 1) / _HERSHEY_PX

    for class_boxes in bboxes:
        for b in class_boxes:
            x1i = int(np.clip(round(b.xmin), 0, w - 1))
            y1i = int(np.clip(round(b.ymin), 0, h - 1))
            x2i = int(np.clip(round(b.xmax), 0, w - 1))
            y2i = int(np.clip(round(b.ymax), 0, h - 1))
            cv2.rectangle(out, (x1i, y1i), (x2i, y2i), BOX_COLOR, thickness=box_thickness)

            if legend_size <= 0:
                continue

            y_legend = min(y1i + legend_size, h - 1)
            cv2.rectangle(out, (x1i, y1i), (x2i, y_legend), LEGEND_COLOR, thickness=-1)
            cv2.putText(
                out,
                legend_text(b, class_names),
                (x1i, max(y_legend - 2, 0)),
                cv2.FONT_HERSHEY_SIMPLEX,
                font_scale,
                TEXT_COLOR,
                thickness=1,
                lineType=cv2.LINE_AA,
            )

    return out


def annotate_image(
    image_rgb: np.ndarray,
    scaled_dims: ImgDimensions,
    legend_size: int,
    bboxes: BboxesPerClass,
    class_names: Optional[Mapping[int, str]] = None,
) -> np.ndarray:
    """
    Draw boxes expressed in the scaled (canvas) space onto the original image.
    """

    return draw_bboxes(
        image_rgb,
        remap_bboxes(bboxes, scaled_dims, ImgDimensions.of(image_rgb)),
        legend_size=legend_size,
        class_names=class_names,
    )
