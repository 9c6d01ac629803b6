"""
Inference engines behind a single `Model` interface.

Engines import their runtime lazily so pre/post-processing stays usable
without any inference runtime installed.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np


class Model(Protocol):
    """
    Takes a (1, 3, Th, Tw) float32 tensor in [0, 1] and returns the raw
    (1, 4 + C, N) prediction tensor.

    Engines that know their fixed input size may also expose `input_dims`
    (an `ImgDimensions`, or None for dynamic shapes).
    """

    def infer(self, tensor: np.ndarray) -> np.ndarray: ...


__all__ = ["Model"]
