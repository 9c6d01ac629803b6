from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .sort import SortConfig

_INTERPOLATIONS = {"nearest", "linear", "area", "cubic"}
_BACKENDS = {"onnxruntime", "torchscript"}
_DEVICES = {"cpu", "cuda"}


@dataclass(frozen=True)
class PipelineConfig:
    model_input: Tuple[int, int] = (640, 384)
    conf_threshold: float = 0.25
    nms_threshold: float = 0.45
    tracking: bool = True
    legend_size: int = 14
    interpolation: str = "nearest"
    backend: Optional[str] = None
    device: str = "cpu"
    class_names_path: Optional[str] = None
    sort: SortConfig = field(default_factory=SortConfig)

    def __post_init__(self) -> None:
        if len(self.model_input) != 2 or min(self.model_input) <= 0:
            raise ValueError("model_input must be a (width, height) pair of positive ints")
        if not (0.0 <= self.conf_threshold <= 1.0):
            raise ValueError("conf_threshold must be within [0, 1]")
        if not (0.0 <= self.nms_threshold <= 1.0):
            raise ValueError("nms_threshold must be within [0, 1]")
        if self.legend_size < 0:
            raise ValueError("legend_size must be >= 0")
        if self.interpolation not in _INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of {sorted(_INTERPOLATIONS)}")
        if self.backend is not None and self.backend not in _BACKENDS:
            raise ValueError(f"backend must be one of {sorted(_BACKENDS)}")
        if self.device not in _DEVICES:
            raise ValueError(f"device must be one of {sorted(_DEVICES)}")


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_str(payload: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    value = payload.get(key, default)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string if provided")
    return value


def _parse_sort(payload: Any) -> SortConfig:
    if payload is None:
        return SortConfig()
    if not isinstance(payload, dict):
        raise ValueError("sort must be a JSON object")
    allowed = {"max_age", "min_hits", "iou_threshold", "min_confidence"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown sort keys: {unknown}")
    defaults = SortConfig()
    return SortConfig(
        max_age=_require_int(payload, "max_age", defaults.max_age),
        min_hits=_require_int(payload, "min_hits", defaults.min_hits),
        iou_threshold=_require_number(payload, "iou_threshold", defaults.iou_threshold),
        min_confidence=_require_number(payload, "min_confidence", defaults.min_confidence),
    )


def load_pipeline_config(path: Path) -> PipelineConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {
        "model_input",
        "conf_threshold",
        "nms_threshold",
        "tracking",
        "legend_size",
        "interpolation",
        "backend",
        "device",
        "class_names_path",
        "sort",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    defaults = PipelineConfig()
    model_input = payload.get("model_input", list(defaults.model_input))
    if (
        not isinstance(model_input, list)
        or len(model_input) != 2
        or any(isinstance(v, bool) or not isinstance(v, int) for v in model_input)
    ):
        raise ValueError("model_input must be a [width, height] list of integers")

    tracking = payload.get("tracking", defaults.tracking)
    if not isinstance(tracking, bool):
        raise ValueError("tracking must be a boolean")

    return PipelineConfig(
        model_input=(int(model_input[0]), int(model_input[1])),
        conf_threshold=_require_number(payload, "conf_threshold", defaults.conf_threshold),
        nms_threshold=_require_number(payload, "nms_threshold", defaults.nms_threshold),
        tracking=tracking,
        legend_size=_require_int(payload, "legend_size", defaults.legend_size),
        interpolation=_optional_str(payload, "interpolation", defaults.interpolation) or defaults.interpolation,
        backend=_optional_str(payload, "backend"),
        device=_optional_str(payload, "device", defaults.device) or defaults.device,
        class_names_path=_optional_str(payload, "class_names_path"),
        sort=_parse_sort(payload.get("sort")),
    )
