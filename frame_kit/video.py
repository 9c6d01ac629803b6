from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from .errors import FrameError
from .frame_times import AggregatedTimes, FrameTimer, FrameTimes
from .letterbox import image_from_buffer, image_to_buffer
from .runtime import FramePipeline, FrameResult
from .types import ImgDimensions

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

VIDEO_SUFFIXES = {".mp4", ".mkv", ".avi", ".mov"}
IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png"}


def process_buffer(
    buffer: Union[bytes, bytearray, memoryview],
    frame_dims: ImgDimensions,
    pipeline: FramePipeline,
    frame_times: FrameTimes,
) -> Tuple[bytes, FrameResult]:
    """
    Run one raw RGB buffer (width * height * 3 bytes, no padding) through the
    pipeline and return the annotated frame as a buffer of the same layout.
    """

    with FrameTimer(frame_times, "frame_to_buffer"):
        image = image_from_buffer(buffer, frame_dims)

    result = pipeline.process(image, frame_times)
    out_image = result.annotated if result.annotated is not None else image

    with FrameTimer(frame_times, "buffer_to_frame"):
        out = image_to_buffer(out_image)

    logger.debug("%s", frame_times.describe())
    return out, result


def process_image(path: PathLike, pipeline: FramePipeline) -> Path:
    """
    Annotate a single image, writing `<name>.out.jpg` beside it.
    """

    path = Path(path)
    bgr = cv2.imread(str(path))
    if bgr is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")

    frame_times = FrameTimes()
    result = pipeline.process(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB), frame_times)
    # A single frame includes lazy engine initialisation, so these numbers overstate steady state.
    logger.debug("%s", frame_times.describe())

    annotated = result.annotated if result.annotated is not None else cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
    output_path = path.with_suffix(".out.jpg")
    if not cv2.imwrite(str(output_path), cv2.cvtColor(annotated, cv2.COLOR_RGB2BGR)):
        raise RuntimeError(f"Failed to write {output_path}")
    logger.info("Wrote %s", output_path)
    return output_path


def open_video(path: PathLike) -> Tuple[cv2.VideoCapture, ImgDimensions, float]:
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise FileNotFoundError(f"Could not open video: {path}")

    w = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
    h = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
    fps = cap.get(cv2.CAP_PROP_FPS)
    fps_val = float(fps) if fps and fps > 0 else 30.0
    return cap, ImgDimensions(float(w), float(h)), fps_val


def log_aggregated(times: AggregatedTimes, ignore_first: bool = True) -> None:
    if len(times) == 0:
        logger.info("No frames processed.")
        return
    logger.info("Frames processed: %d", len(times))
    logger.info("avg: %s", times.average(ignore_first).describe())
    logger.info("min: %s", times.min(ignore_first).describe())
    logger.info("max: %s", times.max(ignore_first).describe())


def process_video(
    path: PathLike,
    pipeline: FramePipeline,
    *,
    live: bool = False,
    output_path: Optional[PathLike] = None,
) -> AggregatedTimes:
    """
    Decode a video frame by frame, annotate every frame and encode the result to
    `<input>.out.mkv`. Frames are processed strictly in decode order. A frame
    failing with `FrameError` is logged and skipped; configuration errors abort.
    """

    path = Path(path)
    cap, frame_dims, fps = open_video(path)
    logger.info("File info: %s, %.2f fps", frame_dims, fps)

    out_path = Path(output_path) if output_path is not None else path.with_name(path.name + ".out.mkv")
    width, height = frame_dims.as_int()
    writer = cv2.VideoWriter(str(out_path), cv2.VideoWriter_fourcc(*"XVID"), fps, (width, height))
    if not writer.isOpened():
        cap.release()
        raise RuntimeError(f"Could not open video writer for {out_path}")

    times = AggregatedTimes()
    frame_idx = 0
    try:
        while True:
            ok, bgr = cap.read()
            if not ok or bgr is None:
                logger.info("Reached end of stream.")
                break
            frame_idx += 1

            frame_times = FrameTimes()
            try:
                with FrameTimer(frame_times, "frame_to_buffer"):
                    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
                result = pipeline.process(rgb, frame_times)
            except FrameError as exc:
                logger.warning("Dropping frame %d: %s", frame_idx, exc)
                continue

            annotated = result.annotated if result.annotated is not None else rgb
            with FrameTimer(frame_times, "buffer_to_frame"):
                out_bgr = cv2.cvtColor(np.ascontiguousarray(annotated), cv2.COLOR_RGB2BGR)
                writer.write(out_bgr)
            times.push(frame_times)
            logger.debug("frame %d: %s", frame_idx, frame_times.describe())

            if live:
                cv2.imshow("frame_kit", out_bgr)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    logger.info("Playback stopped by user.")
                    break
    finally:
        cap.release()
        writer.release()
        if live:
            cv2.destroyAllWindows()

    logger.info("Wrote %s", out_path)
    log_aggregated(times)
    return times
