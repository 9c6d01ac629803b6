from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from ..types import ImgDimensions

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def providers_for_device(device: str) -> Sequence[str]:
    if device == "cuda":
        return ("CUDAExecutionProvider", "CPUExecutionProvider")
    return ("CPUExecutionProvider",)


@dataclass(frozen=True)
class OnnxRuntimeModelConfig:
    """
    - device: "cpu" or "cuda"; selects execution providers unless `providers` is set
    - providers: explicit execution providers, highest priority first
    - input_name/output_name: override the first graph input/output
    """

    device: str = "cpu"
    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None


class OnnxRuntimeModel:
    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeModelConfig = OnnxRuntimeModelConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for .onnx detectors. Install with `pip install onnxruntime` "
                "(or `onnxruntime-gpu` for --cuda)."
            ) from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(f"Detector model not found: {self.model_path}")

        wanted = list(cfg.providers or providers_for_device(cfg.device))
        providers = [p for p in wanted if p in set(ort.get_available_providers())]
        if not providers:
            providers = ["CPUExecutionProvider"]
        if providers != wanted:
            logger.warning("Execution providers %s unavailable, running on %s", wanted, providers)

        opts = ort.SessionOptions()
        opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        self.session = ort.InferenceSession(str(self.model_path), sess_options=opts, providers=providers)

        graph_input = self.session.get_inputs()[0]
        self.input_name = cfg.input_name or graph_input.name
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        self._input_shape = tuple(graph_input.shape)
        logger.info(
            "Loaded %s (input %s %s) on %s",
            self.model_path,
            self.input_name,
            self._input_shape,
            self.session.get_providers(),
        )

    @property
    def input_dims(self) -> Optional[ImgDimensions]:
        # dynamic axes show up as strings or None
        shape = self._input_shape
        if len(shape) != 4 or not all(isinstance(v, int) for v in shape[2:]):
            return None
        return ImgDimensions(float(shape[3]), float(shape[2]))

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        (preds,) = self.session.run([self.output_name], {self.input_name: tensor})
        return np.asarray(preds)
