from __future__ import annotations

import logging
import threading
from typing import List, Optional, Protocol, Sequence

from .errors import UnknownClassError
from .sort import SortConfig, SortTracker
from .types import Bbox, BboxesPerClass, ImgDimensions, Observation, Track, empty_per_class, is_degenerate

logger = logging.getLogger(__name__)


class Tracker(Protocol):
    """
    Anything that turns one frame of observations into identity-stable tracks.
    Implementations are stateful and not safe for concurrent use.
    """

    def predict(self, observations: Sequence[Observation]) -> List[Track]: ...


def flatten_bboxes(bboxes: BboxesPerClass) -> List[Bbox]:
    return [b for class_boxes in bboxes for b in class_boxes]


def unflatten_bboxes(flat_bboxes: Sequence[Bbox], num_classes: int) -> BboxesPerClass:
    """
    Group a flat box list back by `class_id`. An id outside the taxonomy is a
    configuration error, never silently dropped.
    """

    out = empty_per_class(num_classes)
    for b in flat_bboxes:
        if not (0 <= b.class_id < num_classes):
            raise UnknownClassError(b.class_id, num_classes)
        out[b.class_id].append(b)
    return out


def bbox_to_observation(b: Bbox) -> Observation:
    return Observation(
        cx=(b.xmin + b.xmax) / 2,
        cy=(b.ymin + b.ymax) / 2,
        height=b.height,
        aspect=b.width / b.height,
        class_id=b.class_id,
        confidence=b.detector_confidence,
    )


def bboxes_to_observations(bboxes: BboxesPerClass) -> List[Observation]:
    return [bbox_to_observation(b) for b in flatten_bboxes(bboxes) if b.height > 0]


def tracks_to_bboxes(tracks: Sequence[Track], scaled_dims: ImgDimensions, num_classes: int) -> List[Bbox]:
    """
    Map tracks back to boxes clamped into `scaled_dims`. The track's confidence
    originates from the detection it was last matched with, so it fills both
    confidence fields.
    """

    out: List[Bbox] = []
    for track in tracks:
        if not (0 <= track.class_id < num_classes):
            raise UnknownClassError(track.class_id, num_classes)

        w = track.aspect * track.height
        xmin = track.cx - w / 2
        ymin = track.cy - track.height / 2
        xmax = xmin + w
        ymax = ymin + track.height

        xmin = min(max(xmin, 0.0), scaled_dims.width)
        ymin = min(max(ymin, 0.0), scaled_dims.height)
        xmax = min(max(xmax, 0.0), scaled_dims.width)
        ymax = min(max(ymax, 0.0), scaled_dims.height)
        if is_degenerate(xmin, ymin, xmax, ymax):
            continue

        out.append(
            Bbox(
                xmin=xmin,
                ymin=ymin,
                xmax=xmax,
                ymax=ymax,
                class_id=track.class_id,
                detector_confidence=track.confidence,
                tracker_confidence=track.confidence,
                tracker_id=int(track.track_id),
            )
        )
    return out


class TrackerAdapter:
    """
    Owns one tracker and feeds it a frame at a time.

    All calls go through a lock, so a host delivering buffers from several
    threads still mutates the tracker strictly one frame after another. Frame
    ordering itself is the caller's responsibility.
    """

    def __init__(self, tracker: Tracker, num_classes: int):
        if num_classes <= 0:
            raise ValueError("num_classes must be > 0")
        self._tracker = tracker
        self._lock = threading.Lock()
        self.num_classes = num_classes

    @classmethod
    def sort(cls, num_classes: int, cfg: Optional[SortConfig] = None) -> "TrackerAdapter":
        return cls(SortTracker(cfg or SortConfig()), num_classes)

    def predict_tracks(self, bboxes: BboxesPerClass) -> List[Track]:
        observations = bboxes_to_observations(bboxes)
        with self._lock:
            tracks = self._tracker.predict(observations)
        logger.debug("%d observations -> %d tracks", len(observations), len(tracks))
        return tracks

    def update(self, bboxes: BboxesPerClass, scaled_dims: ImgDimensions) -> BboxesPerClass:
        """
        Replace this frame's detector boxes with tracker-resolved boxes,
        grouped by class.
        """

        tracks = self.predict_tracks(bboxes)
        return unflatten_bboxes(tracks_to_bboxes(tracks, scaled_dims, self.num_classes), self.num_classes)
