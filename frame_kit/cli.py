from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from .config import PipelineConfig, load_pipeline_config
from .log import setup_logging
from .runtime import build_pipeline
from .video import IMAGE_SUFFIXES, VIDEO_SUFFIXES, process_image, process_video

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frame_kit",
        description="Run object detection (and optional tracking) on an image or video file.",
    )
    parser.add_argument("input", type=Path, help="Path to input image (.jpg/.png) or video (.mp4/.mkv).")
    parser.add_argument("--model", "-m", default="_models/yolov8s.onnx", help="Detector model file.")
    parser.add_argument("--backend", choices=["onnxruntime", "torchscript"], default=None)
    parser.add_argument("--cuda", action="store_true", help="Try CUDA acceleration (falls back to cpu).")
    parser.add_argument("--live", action="store_true", help="Show annotated frames while processing video.")
    parser.add_argument("--config", type=Path, default=None, help="Pipeline config JSON.")
    parser.add_argument("--no-tracking", action="store_true", help="Annotate raw detections only.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold override.")
    parser.add_argument("--iou", type=float, default=None, help="NMS IoU threshold override.")
    parser.add_argument("--classes", default=None, help="Class names file (metadata.yaml style).")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    return parser


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    cfg = load_pipeline_config(args.config) if args.config is not None else PipelineConfig()
    overrides = {}
    if args.backend is not None:
        overrides["backend"] = args.backend
    if args.cuda:
        overrides["device"] = "cuda"
    if args.no_tracking:
        overrides["tracking"] = False
    if args.conf is not None:
        overrides["conf_threshold"] = float(args.conf)
    if args.iou is not None:
        overrides["nms_threshold"] = float(args.iou)
    if args.classes is not None:
        overrides["class_names_path"] = str(args.classes)
    return replace(cfg, **overrides) if overrides else cfg


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    suffix = args.input.suffix.lower()
    if suffix not in VIDEO_SUFFIXES and suffix not in IMAGE_SUFFIXES:
        logger.error("Unhandled file extension: %r (%s)", suffix, args.input)
        return 2

    cfg = resolve_config(args)
    if suffix in IMAGE_SUFFIXES:
        pipeline = build_pipeline(args.model, cfg, tracking=False)
        process_image(args.input, pipeline)
    else:
        pipeline = build_pipeline(args.model, cfg)
        process_video(args.input, pipeline, live=args.live)
    return 0
