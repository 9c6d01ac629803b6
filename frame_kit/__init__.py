"""
Frame-by-frame object detection post-processing and tracking.

Letterbox preprocessing, YOLO anchor-output parsing, per-class NMS, a SORT-style
tracker adapter and coordinate remapping, with per-stage timing. OpenCV handles
resizing, drawing, Kalman filtering and video I/O; SciPy solves the track
assignment. Inference engines are loaded lazily from `frame_kit.backends`.
"""

from .types import Bbox, BboxesPerClass, ImgDimensions, Observation, Track
from .errors import (
    BufferSizeError,
    FrameError,
    InvalidImageError,
    MalformedPredictionError,
    PipelineConfigError,
    UnknownClassError,
)
from .letterbox import image_from_buffer, image_to_buffer, letterbox
from .postprocess import ParserConfig, PredictionParser, parse_predictions
from .nms import NMSConfig, iou, nms, non_maximum_suppression
from .remap import remap_bboxes
from .sort import SortConfig, SortTracker
from .tracking import TrackerAdapter, flatten_bboxes, unflatten_bboxes
from .frame_times import AggregatedTimes, FrameTimer, FrameTimes
from .config import PipelineConfig, load_pipeline_config
from .metadata import COCO_CLASS_NAMES, load_class_names
from .runtime import FramePipeline, FrameResult, build_pipeline, load_model
from .visualize import annotate_image, draw_bboxes

__all__ = [
    "Bbox",
    "BboxesPerClass",
    "ImgDimensions",
    "Observation",
    "Track",
    "BufferSizeError",
    "FrameError",
    "InvalidImageError",
    "MalformedPredictionError",
    "PipelineConfigError",
    "UnknownClassError",
    "image_from_buffer",
    "image_to_buffer",
    "letterbox",
    "ParserConfig",
    "PredictionParser",
    "parse_predictions",
    "NMSConfig",
    "iou",
    "nms",
    "non_maximum_suppression",
    "remap_bboxes",
    "SortConfig",
    "SortTracker",
    "TrackerAdapter",
    "flatten_bboxes",
    "unflatten_bboxes",
    "AggregatedTimes",
    "FrameTimer",
    "FrameTimes",
    "PipelineConfig",
    "load_pipeline_config",
    "COCO_CLASS_NAMES",
    "load_class_names",
    "FramePipeline",
    "FrameResult",
    "build_pipeline",
    "load_model",
    "annotate_image",
    "draw_bboxes",
]
