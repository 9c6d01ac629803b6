from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..types import ImgDimensions

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptModelConfig:
    """
    - device: "cpu" or "cuda"; cuda falls back to cpu when unavailable
    - half: run the forward pass in float16 (cuda exports only)
    - output_index: which output holds the (1, 4 + C, N) predictions for multi-output exports
    """

    device: str = "cpu"
    half: bool = False
    output_index: int = 0


class TorchScriptModel:
    """
    Detector exported with `model.export(format="torchscript")`. Ultralytics stores
    the export image size in the archive's `config.txt`, which is surfaced as
    `input_dims` when present.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptModelConfig = TorchScriptModelConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for .torchscript detectors. Install with `pip install torch`.") from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(f"Detector model not found: {self.model_path}")

        if cfg.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA requested but torch reports no device, running on cpu")
            self.device = torch.device("cpu")
        else:
            self.device = torch.device(cfg.device)
        self.cfg = cfg
        self._torch = torch

        extra_files = {"config.txt": ""}
        self.model = torch.jit.load(str(self.model_path), map_location=self.device, _extra_files=extra_files)
        self.model.eval()
        self._input_dims = _export_dims(extra_files["config.txt"])
        logger.info("Loaded %s on %s", self.model_path, self.device)

    @property
    def input_dims(self) -> Optional[ImgDimensions]:
        return self._input_dims

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.from_numpy(np.ascontiguousarray(tensor)).to(self.device)
        x = x.half() if self.cfg.half else x.float()

        with torch.inference_mode():
            out = self.model(x)
        if isinstance(out, (tuple, list)):
            out = out[self.cfg.output_index]
        return out.float().cpu().numpy()


def _export_dims(raw: Union[str, bytes]) -> Optional[ImgDimensions]:
    """
    Read `imgsz` ([h, w]) from an Ultralytics export's JSON metadata, if any.
    """

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw:
        return None
    try:
        imgsz = json.loads(raw).get("imgsz")
    except (ValueError, AttributeError):
        return None
    if isinstance(imgsz, list) and len(imgsz) == 2 and all(isinstance(v, int) for v in imgsz):
        return ImgDimensions(float(imgsz[1]), float(imgsz[0]))
    return None
