from __future__ import annotations

from typing import Tuple, Union

import numpy as np

from .errors import BufferSizeError, InvalidImageError
from .types import ImgDimensions

# Canvas fill the detector was trained with.
PAD_VALUE = 0.5

_INTERPOLATIONS = ("nearest", "linear", "area", "cubic")


def _cv2_interpolation(interpolation: Union[str, int]) -> int:
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if isinstance(interpolation, int):
        return interpolation
    table = {
        "nearest": cv2.INTER_NEAREST,
        "linear": cv2.INTER_LINEAR,
        "area": cv2.INTER_AREA,
        "cubic": cv2.INTER_CUBIC,
    }
    key = str(interpolation).lower()
    if key not in table:
        raise ValueError(f"Unknown interpolation {interpolation!r}; expected one of {_INTERPOLATIONS}")
    return table[key]


def check_rgb_image(image: np.ndarray) -> None:
    if image is None or not hasattr(image, "shape"):
        raise InvalidImageError("image must be a NumPy array (RGB).")
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidImageError(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidImageError(f"Image has zero area: {image.shape}")
    if image.dtype != np.uint8:
        raise InvalidImageError(f"Expected 8-bit RGB (uint8), got dtype {image.dtype}")


def letterbox(
    image: np.ndarray,
    target_dims: ImgDimensions = ImgDimensions(640.0, 384.0),
    interpolation: Union[str, int] = "nearest",
) -> Tuple[np.ndarray, ImgDimensions]:
    """
    Scale an RGB image to fit the model canvas while keeping its aspect ratio.

    The scaled pixels are copied flush against the top-left corner of a canvas
    pre-filled with `PAD_VALUE`, so box coordinates predicted on the canvas only
    need a single ratio (no offset) to map back to the source image.

    Returns:
        tensor: float32 array shaped (1, 3, Th, Tw), values in [0, 1]
        scaled_dims: size of the region occupied by the scaled image
    """

    check_rgb_image(image)

    h, w = image.shape[:2]
    canvas_w, canvas_h = target_dims.as_int()
    if canvas_w <= 0 or canvas_h <= 0:
        raise ValueError(f"Target canvas must have positive size, got {target_dims}")

    ratio = min(canvas_w / w, canvas_h / h)
    scaled_w = min(canvas_w, max(1, int(round(w * ratio))))
    scaled_h = min(canvas_h, max(1, int(round(h * ratio))))

    flag = _cv2_interpolation(interpolation)
    if (w, h) != (scaled_w, scaled_h):
        import cv2  # type: ignore

        image = cv2.resize(image, (scaled_w, scaled_h), interpolation=flag)

    tensor = np.full((1, 3, canvas_h, canvas_w), PAD_VALUE, dtype=np.float32)
    # HWC -> CHW, normalize
    tensor[0, :, :scaled_h, :scaled_w] = np.transpose(image, (2, 0, 1)).astype(np.float32) / 255.0

    return tensor, ImgDimensions(float(scaled_w), float(scaled_h))


def image_from_buffer(buffer: Union[bytes, bytearray, memoryview, np.ndarray], dims: ImgDimensions) -> np.ndarray:
    """
    View a flat, unpadded 8-bit RGB buffer as an (H, W, 3) image.
    """

    w, h = dims.as_int()
    expected = w * h * 3
    if isinstance(buffer, np.ndarray):
        flat = buffer.reshape(-1).astype(np.uint8, copy=False)
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8)
    if flat.size != expected:
        raise BufferSizeError(f"Buffer holds {flat.size} bytes, expected {expected} for {w}x{h} RGB.")
    return flat.reshape(h, w, 3)


def image_to_buffer(image: np.ndarray) -> bytes:
    check_rgb_image(image)
    return np.ascontiguousarray(image, dtype=np.uint8).tobytes()
