from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .backends import Model
from .config import PipelineConfig
from .errors import PipelineConfigError
from .frame_times import FrameTimer, FrameTimes
from .letterbox import letterbox
from .metadata import coco_class_names, load_class_names, validate_taxonomy
from .nms import non_maximum_suppression
from .postprocess import ParserConfig, PredictionParser
from .remap import remap_bboxes
from .tracking import TrackerAdapter
from .types import BboxesPerClass, ImgDimensions, count_bboxes
from .visualize import annotate_image

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Absolute paths are returned as-is; relative paths resolve against `root`,
    or the project root when `root` is "auto"/None.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def infer_backend(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".onnx":
        return "onnxruntime"
    if suffix in {".torchscript", ".ts", ".pt"}:
        return "torchscript"
    raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.")


def load_model(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    device: str = "cpu",
    root: Optional[PathLike] = "auto",
) -> Model:
    """
    Load a detector behind the `Model` interface. The backend is picked from the
    file extension unless given explicitly.
    """

    resolved = resolve_path(model_path, root=root)
    chosen = (backend or infer_backend(resolved)).lower()

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeModel, OnnxRuntimeModelConfig

        return OnnxRuntimeModel(resolved, OnnxRuntimeModelConfig(device=device))

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptModel, TorchScriptModelConfig

        return TorchScriptModel(resolved, TorchScriptModelConfig(device=device))

    raise ValueError(f"Unsupported backend: {backend!r}")


@dataclass(frozen=True)
class FrameResult:
    # Boxes in the original frame's pixel space.
    bboxes: BboxesPerClass
    scaled_dims: ImgDimensions
    annotated: Optional[np.ndarray] = None


class FramePipeline:
    """
    Per-frame detection pipeline:

        letterbox -> inference -> parse -> NMS -> [tracking] -> remap -> annotate

    Expects RGB images as (H, W, 3) uint8 arrays. With a tracker attached,
    frames must be submitted one at a time in decode order.
    """

    def __init__(
        self,
        model: Model,
        cfg: PipelineConfig = PipelineConfig(),
        *,
        class_names: Optional[Mapping[int, str]] = None,
        tracker: Optional[TrackerAdapter] = None,
        annotate: bool = True,
    ):
        self.model = model
        self.cfg = cfg
        self.class_names = validate_taxonomy(class_names if class_names is not None else coco_class_names())
        self.num_classes = len(self.class_names)
        if tracker is not None and tracker.num_classes != self.num_classes:
            raise PipelineConfigError(
                f"Tracker expects {tracker.num_classes} classes, taxonomy has {self.num_classes}."
            )
        self.tracker = tracker
        self.annotate = annotate
        self.model_input = ImgDimensions(float(cfg.model_input[0]), float(cfg.model_input[1]))
        expected = getattr(model, "input_dims", None)
        if expected is not None and expected != self.model_input:
            raise PipelineConfigError(
                f"model_input {cfg.model_input} does not match the model's input size "
                f"{expected.as_int()} (width, height)."
            )
        self.parser = PredictionParser(ParserConfig(conf_threshold=cfg.conf_threshold, num_classes=self.num_classes))

    def preprocess(self, image_rgb: np.ndarray) -> Tuple[np.ndarray, ImgDimensions]:
        return letterbox(image_rgb, self.model_input, interpolation=self.cfg.interpolation)

    def detect(self, image_rgb: np.ndarray, frame_times: FrameTimes) -> Tuple[BboxesPerClass, ImgDimensions]:
        """
        Run stages up to and including tracking; boxes stay in the scaled space.
        """

        with FrameTimer(frame_times, "buffer_resize"):
            tensor, scaled_dims = self.preprocess(image_rgb)
        logger.debug("scaled dims: %s, tensor shape: %s", scaled_dims, tensor.shape)

        with FrameTimer(frame_times, "buffer_to_tensor"):
            tensor = np.ascontiguousarray(tensor, dtype=np.float32)

        with FrameTimer(frame_times, "forward_pass"):
            preds = self.model.infer(tensor)
        logger.debug("raw predictions shape: %s", getattr(preds, "shape", None))

        with FrameTimer(frame_times, "bbox_extraction"):
            bboxes = self.parser.parse(preds, self.model_input)

        with FrameTimer(frame_times, "nms"):
            bboxes = non_maximum_suppression(bboxes, self.cfg.nms_threshold)
        logger.debug("after nms: %d boxes", count_bboxes(bboxes))

        if self.tracker is not None:
            with FrameTimer(frame_times, "tracking"):
                bboxes = self.tracker.update(bboxes, scaled_dims)
            logger.debug("after tracking: %d boxes", count_bboxes(bboxes))

        return bboxes, scaled_dims

    def process(self, image_rgb: np.ndarray, frame_times: Optional[FrameTimes] = None) -> FrameResult:
        if frame_times is None:
            frame_times = FrameTimes()

        bboxes, scaled_dims = self.detect(image_rgb, frame_times)

        with FrameTimer(frame_times, "remap"):
            frame_bboxes = remap_bboxes(bboxes, scaled_dims, ImgDimensions.of(image_rgb))

        annotated = None
        if self.annotate:
            with FrameTimer(frame_times, "annotation"):
                annotated = annotate_image(image_rgb, scaled_dims, self.cfg.legend_size, bboxes, self.class_names)

        return FrameResult(bboxes=frame_bboxes, scaled_dims=scaled_dims, annotated=annotated)


def build_pipeline(
    model_path: PathLike,
    cfg: PipelineConfig = PipelineConfig(),
    *,
    tracking: Optional[bool] = None,
    root: Optional[PathLike] = "auto",
) -> FramePipeline:
    """
    Load the model and taxonomy named by `cfg` and wire up a pipeline. `tracking`
    overrides `cfg.tracking` (single images are never tracked).
    """

    model = load_model(model_path, backend=cfg.backend, device=cfg.device, root=root)
    if cfg.class_names_path is not None:
        class_names = load_class_names(str(resolve_path(cfg.class_names_path, root=root)))
    else:
        class_names = coco_class_names()

    use_tracking = cfg.tracking if tracking is None else tracking
    tracker = TrackerAdapter.sort(len(class_names), cfg.sort) if use_tracking else None
    logger.info(
        "Pipeline ready: model=%s classes=%d tracking=%s input=%s",
        model_path,
        len(class_names),
        use_tracking,
        cfg.model_input,
    )
    return FramePipeline(model, cfg, class_names=class_names, tracker=tracker)
