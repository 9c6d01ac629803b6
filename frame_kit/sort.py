"""
Small SORT-style multi-object tracker.

Each track runs a constant-velocity Kalman filter over (cx, cy, aspect, height).
Every frame the filters are advanced and predicted boxes are assigned to the new
observations of the same class by maximising total IoU (Hungarian assignment).
Matched filters are corrected, unmatched observations start new tracks, and
tracks idle for longer than `max_age` frames are dropped.

The tracker is stateful and must see frames one at a time, in order. It does
no locking of its own; see `frame_kit.tracking.TrackerAdapter`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from .types import Observation, Track

logger = logging.getLogger(__name__)

_MIN_HEIGHT = 1e-3


@dataclass(frozen=True)
class SortConfig:
    max_age: int = 10
    min_hits: int = 1
    iou_threshold: float = 0.3
    min_confidence: float = 0.05
    std_weight_position: float = 1.0 / 20.0
    std_weight_velocity: float = 1.0 / 160.0

    def __post_init__(self) -> None:
        if self.max_age < 0:
            raise ValueError("max_age must be >= 0")
        if self.min_hits < 1:
            raise ValueError("min_hits must be >= 1")
        if not (0.0 < self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within (0, 1]")
        if self.std_weight_position <= 0 or self.std_weight_velocity <= 0:
            raise ValueError("Kalman noise weights must be > 0")


class KalmanBoxFilter:
    """
    Constant-velocity `cv2.KalmanFilter` over (cx, cy, a, h) and their velocities.
    Process and measurement noise scale with the current box height, so both are
    refreshed before every predict and correct.
    """

    def __init__(self, measurement: np.ndarray, std_weight_position: float, std_weight_velocity: float):
        try:
            import cv2  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("OpenCV is required for SortTracker. Install with `pip install opencv-python`.") from e

        self._wp = std_weight_position
        self._wv = std_weight_velocity

        kf = cv2.KalmanFilter(8, 4)
        # x' = x + v, for each of cx, cy, a, h
        transition = np.eye(8, dtype=np.float32)
        transition[:4, 4:] = np.eye(4, dtype=np.float32)
        kf.transitionMatrix = transition
        kf.measurementMatrix = np.eye(4, 8, dtype=np.float32)

        h = float(measurement[3])
        kf.statePost = np.r_[measurement, np.zeros(4)].astype(np.float32).reshape(8, 1)
        std = [
            2 * self._wp * h,
            2 * self._wp * h,
            1e-2,
            2 * self._wp * h,
            10 * self._wv * h,
            10 * self._wv * h,
            1e-5,
            10 * self._wv * h,
        ]
        kf.errorCovPost = np.diag(np.square(std)).astype(np.float32)
        self.kf = kf

    @staticmethod
    def _height(state: np.ndarray) -> float:
        return max(float(state[3, 0]), _MIN_HEIGHT)

    def predict(self) -> None:
        h = self._height(self.kf.statePost)
        std = [self._wp * h, self._wp * h, 1e-2, self._wp * h, self._wv * h, self._wv * h, 1e-5, self._wv * h]
        self.kf.processNoiseCov = np.diag(np.square(std)).astype(np.float32)
        self.kf.predict()

    def correct(self, measurement: np.ndarray) -> None:
        h = self._height(self.kf.statePre)
        std = [self._wp * h, self._wp * h, 1e-1, self._wp * h]
        self.kf.measurementNoiseCov = np.diag(np.square(std)).astype(np.float32)
        self.kf.correct(np.asarray(measurement, dtype=np.float32).reshape(4, 1))

    @property
    def state(self) -> Tuple[float, float, float, float]:
        cx, cy, aspect, h = (float(v) for v in self.kf.statePost[:4, 0])
        return cx, cy, aspect, max(h, _MIN_HEIGHT)


def _xyxy(cx: float, cy: float, aspect: float, h: float) -> Tuple[float, float, float, float]:
    w = aspect * h
    return cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2


def _iou_matrix(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    # a: (T, 4), b: (D, 4) xyxy
    xx1 = np.maximum(a[:, None, 0], b[None, :, 0])
    yy1 = np.maximum(a[:, None, 1], b[None, :, 1])
    xx2 = np.minimum(a[:, None, 2], b[None, :, 2])
    yy2 = np.minimum(a[:, None, 3], b[None, :, 3])
    inter = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
    area_a = (a[:, 2] - a[:, 0]) * (a[:, 3] - a[:, 1])
    area_b = (b[:, 2] - b[:, 0]) * (b[:, 3] - b[:, 1])
    union = area_a[:, None] + area_b[None, :] - inter
    return np.where(union > 0.0, inter / np.maximum(union, 1e-12), 0.0)


class _TrackState:
    def __init__(self, track_id: int, obs: Observation, cfg: SortConfig):
        measurement = np.array([obs.cx, obs.cy, obs.aspect, obs.height], dtype=np.float64)
        self.track_id = track_id
        self.class_id = obs.class_id
        self.confidence = obs.confidence
        self.kf = KalmanBoxFilter(measurement, cfg.std_weight_position, cfg.std_weight_velocity)
        self.hits = 1
        self.time_since_update = 0

    def to_track(self) -> Track:
        cx, cy, aspect, h = self.kf.state
        return Track(
            track_id=self.track_id,
            cx=cx,
            cy=cy,
            height=h,
            aspect=aspect,
            confidence=self.confidence,
            class_id=self.class_id,
        )


class SortTracker:
    def __init__(self, cfg: SortConfig = SortConfig()):
        self.cfg = cfg
        self._tracks: List[_TrackState] = []
        self._next_id = 1
        self.frame_count = 0

    @property
    def active_tracks(self) -> int:
        return len(self._tracks)

    def predict(self, observations: Sequence[Observation]) -> List[Track]:
        """
        Advance one frame with this frame's observations; return the tracks
        resolved in this frame.
        """

        self.frame_count += 1
        observations = [
            o for o in observations if o.confidence >= self.cfg.min_confidence and o.height > 0 and o.aspect > 0
        ]

        for t in self._tracks:
            t.kf.predict()

        matches, unmatched_obs = self._associate(observations)

        updated: List[_TrackState] = []
        matched_tracks = set()
        for ti, oi in matches:
            t = self._tracks[ti]
            o = observations[oi]
            t.kf.correct(np.array([o.cx, o.cy, o.aspect, o.height], dtype=np.float64))
            t.confidence = o.confidence
            t.hits += 1
            t.time_since_update = 0
            matched_tracks.add(ti)
            updated.append(t)

        survivors: List[_TrackState] = []
        for ti, t in enumerate(self._tracks):
            if ti not in matched_tracks:
                t.time_since_update += 1
            if t.time_since_update <= self.cfg.max_age:
                survivors.append(t)

        for oi in unmatched_obs:
            t = _TrackState(self._next_id, observations[oi], self.cfg)
            self._next_id += 1
            survivors.append(t)
            updated.append(t)
        self._tracks = survivors

        logger.debug(
            "frame %d: %d observations, %d matched, %d new, %d alive",
            self.frame_count,
            len(observations),
            len(matches),
            len(unmatched_obs),
            len(self._tracks),
        )
        return [t.to_track() for t in updated if t.hits >= self.cfg.min_hits]

    def _associate(self, observations: Sequence[Observation]) -> Tuple[List[Tuple[int, int]], List[int]]:
        if not observations:
            return [], []
        if not self._tracks:
            return [], list(range(len(observations)))

        track_boxes = np.array([_xyxy(*t.kf.state) for t in self._tracks], dtype=np.float64)
        obs_boxes = np.array([_xyxy(o.cx, o.cy, o.aspect, o.height) for o in observations], dtype=np.float64)
        scores = _iou_matrix(track_boxes, obs_boxes)

        track_cls = np.array([t.class_id for t in self._tracks])
        obs_cls = np.array([o.class_id for o in observations])
        scores[track_cls[:, None] != obs_cls[None, :]] = 0.0

        # Optimal one-to-one assignment; pairs below the IoU gate stay unmatched.
        rows, cols = linear_sum_assignment(1.0 - scores)
        matches = [(int(ti), int(oi)) for ti, oi in zip(rows, cols) if scores[ti, oi] >= self.cfg.iou_threshold]

        matched_obs = {oi for _, oi in matches}
        unmatched = [i for i in range(len(observations)) if i not in matched_obs]
        return matches, unmatched
