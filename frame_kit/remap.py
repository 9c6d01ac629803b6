from __future__ import annotations

from typing import Tuple

from .types import BboxesPerClass, ImgDimensions


def remap_ratio(src_dims: ImgDimensions, dst_dims: ImgDimensions) -> Tuple[float, float]:
    if src_dims.width <= 0 or src_dims.height <= 0:
        raise ValueError(f"Source dimensions must be positive, got {src_dims}")
    return dst_dims.width / src_dims.width, dst_dims.height / src_dims.height


def remap_bboxes(bboxes: BboxesPerClass, src_dims: ImgDimensions, dst_dims: ImgDimensions) -> BboxesPerClass:
    """
    Map boxes from `src_dims` pixel space into `dst_dims` pixel space.

    With letterboxed input the scaled image sits at the canvas origin, so
    `src_dims=scaled_dims, dst_dims=original_dims` is a pure per-axis scale.
    Identity, confidences and auxiliary data are carried over unchanged.
    """

    w_ratio, h_ratio = remap_ratio(src_dims, dst_dims)
    return [[b.scaled(w_ratio, h_ratio) for b in class_boxes] for class_boxes in bboxes]
