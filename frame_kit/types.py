from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class ImgDimensions:
    """
    Width/height of an image (or of the region it occupies inside a canvas).
    """

    width: float
    height: float

    def scale(self, ratio: float) -> "ImgDimensions":
        return ImgDimensions(self.width * ratio, self.height * ratio)

    @classmethod
    def of(cls, image: Any) -> "ImgDimensions":
        # (H, W, C) arrays, OpenCV/NumPy style
        h, w = image.shape[:2]
        return cls(float(w), float(h))

    def as_int(self) -> Tuple[int, int]:
        return int(round(self.width)), int(round(self.height))


@dataclass
class Bbox:
    """
    Axis-aligned box in xyxy form.

    `tracker_id` stays None until a tracking stage resolves the box, after which
    it identifies the same physical object across frames. `data` is an open
    slot for per-point annotations (e.g. keypoints) and is never interpreted here.
    """

    xmin: float
    ymin: float
    xmax: float
    ymax: float
    class_id: int
    detector_confidence: float
    tracker_confidence: float = 0.0
    tracker_id: Optional[int] = None
    data: List[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.xmin > self.xmax or self.ymin > self.ymax:
            raise ValueError(
                f"Bbox corners out of order: ({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax})"
            )

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.xmin, self.ymin, self.xmax, self.ymax

    def scaled(self, w_ratio: float, h_ratio: float) -> "Bbox":
        return replace(
            self,
            xmin=self.xmin * w_ratio,
            ymin=self.ymin * h_ratio,
            xmax=self.xmax * w_ratio,
            ymax=self.ymax * h_ratio,
            data=list(self.data),
        )


def is_degenerate(xmin: float, ymin: float, xmax: float, ymax: float) -> bool:
    return xmax <= xmin or ymax <= ymin


# Boxes grouped by class id; index i holds the boxes for class i.
BboxesPerClass = List[List[Bbox]]


def empty_per_class(num_classes: int) -> BboxesPerClass:
    return [[] for _ in range(num_classes)]


def count_bboxes(bboxes: BboxesPerClass) -> int:
    return sum(len(b) for b in bboxes)


@dataclass(frozen=True)
class Observation:
    """
    One detection as handed to a tracker: center, height and aspect (w / h),
    plus the class id as opaque metadata.
    """

    cx: float
    cy: float
    height: float
    aspect: float
    class_id: int
    confidence: float = 1.0


@dataclass(frozen=True)
class Track:
    """
    Tracker output for one object in the current frame.
    """

    track_id: int
    cx: float
    cy: float
    height: float
    aspect: float
    confidence: float
    class_id: int
