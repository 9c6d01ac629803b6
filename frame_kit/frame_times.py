from __future__ import annotations

import time
from dataclasses import dataclass, fields
from typing import Callable, Iterator, List, Optional, Sequence


@dataclass
class FrameTimes:
    """
    Per-stage wall-clock durations (milliseconds) for one processed frame.
    """

    frame_to_buffer: float = 0.0
    buffer_resize: float = 0.0
    buffer_to_tensor: float = 0.0
    forward_pass: float = 0.0
    bbox_extraction: float = 0.0
    nms: float = 0.0
    tracking: float = 0.0
    remap: float = 0.0
    annotation: float = 0.0
    buffer_to_frame: float = 0.0

    @classmethod
    def stage_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def uniform(cls, ms: float) -> "FrameTimes":
        return cls(**{name: float(ms) for name in cls.stage_names()})

    @property
    def total(self) -> float:
        return sum(getattr(self, name) for name in self.stage_names())

    def __add__(self, other: "FrameTimes") -> "FrameTimes":
        return FrameTimes(**{name: getattr(self, name) + getattr(other, name) for name in self.stage_names()})

    def timed(self, stage: str) -> "FrameTimer":
        return FrameTimer(self, stage)

    def describe(self) -> str:
        parts = [f"total: {self.total:.2f}ms"]
        parts.extend(f"{name}: {getattr(self, name):.2f}ms" for name in self.stage_names())
        return ", ".join(parts)


class FrameTimer:
    """
    Context manager recording the duration of a block into one `FrameTimes` field.

        with FrameTimer(frame_times, "nms"):
            bboxes = non_maximum_suppression(bboxes, 0.45)
    """

    def __init__(self, frame_times: FrameTimes, stage: str, clock: Callable[[], float] = time.perf_counter):
        if stage not in FrameTimes.stage_names():
            raise ValueError(f"Unknown stage {stage!r}; expected one of {FrameTimes.stage_names()}")
        self.frame_times = frame_times
        self.stage = stage
        self._clock = clock
        self._start: Optional[float] = None

    def __enter__(self) -> "FrameTimer":
        self._start = self._clock()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._start is None:
            raise RuntimeError("FrameTimer exited without being entered")
        elapsed_ms = (self._clock() - self._start) * 1000.0
        setattr(self.frame_times, self.stage, elapsed_ms)


class AggregatedTimes:
    """
    Append-only collection of `FrameTimes` with per-stage statistics.

    The first pushed frame usually carries lazy engine initialisation, so every
    statistic can skip it with `ignore_first=True`. Each stage is aggregated
    independently; `total` of a result is the sum of its aggregated stages.
    """

    def __init__(self) -> None:
        self._frames: List[FrameTimes] = []

    def push(self, frame_times: FrameTimes) -> None:
        self._frames.append(frame_times)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[FrameTimes]:
        return iter(self._frames)

    def _eligible(self, ignore_first: bool) -> Sequence[FrameTimes]:
        return self._frames[1:] if ignore_first else self._frames

    def average(self, ignore_first: bool = False) -> FrameTimes:
        frames = self._eligible(ignore_first)
        if not frames:
            return FrameTimes()
        n = len(frames)
        return FrameTimes(
            **{name: sum(getattr(ft, name) for ft in frames) / n for name in FrameTimes.stage_names()}
        )

    def min(self, ignore_first: bool = False) -> FrameTimes:
        frames = self._eligible(ignore_first)
        if not frames:
            return FrameTimes()
        return FrameTimes(**{name: min(getattr(ft, name) for ft in frames) for name in FrameTimes.stage_names()})

    def max(self, ignore_first: bool = False) -> FrameTimes:
        frames = self._eligible(ignore_first)
        if not frames:
            return FrameTimes()
        return FrameTimes(**{name: max(getattr(ft, name) for ft in frames) for name in FrameTimes.stage_names()})
