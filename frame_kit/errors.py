"""
Error kinds raised by the frame pipeline.

`FrameError` means "drop this frame and carry on"; `PipelineConfigError` means the
pipeline itself is set up wrong and retrying further frames is pointless.
"""

from __future__ import annotations


class FrameError(ValueError):
    pass


class MalformedPredictionError(FrameError):
    pass


class InvalidImageError(FrameError):
    pass


class BufferSizeError(FrameError):
    pass


class PipelineConfigError(ValueError):
    pass


class UnknownClassError(PipelineConfigError):
    def __init__(self, class_id: int, num_classes: int):
        super().__init__(f"Track references class id {class_id}, taxonomy has {num_classes} classes.")
        self.class_id = class_id
        self.num_classes = num_classes
