from __future__ import annotations

from typing import Dict, Mapping

from .errors import PipelineConfigError

COCO_CLASS_NAMES = (
    "person", "bicycle", "car", "motorbike", "aeroplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat",
    "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack",
    "umbrella", "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball",
    "kite", "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair",
    "sofa", "pottedplant", "bed", "diningtable", "toilet", "tvmonitor", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink", "refrigerator",
    "book", "clock", "vase", "scissors", "teddy bear", "hair drier", "toothbrush",
)


def coco_class_names() -> Dict[int, str]:
    return dict(enumerate(COCO_CLASS_NAMES))


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Load class names from a lightweight `metadata.yaml` style file:

        names:
          0: person
          1: bicycle
          ...

    Only the `names:` block is read, so no YAML parser is needed.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            # a new top-level key ends the block
            if not raw[:1].isspace() and not line[:1].isdigit():
                break

            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return validate_taxonomy(names)


def validate_taxonomy(names: Mapping[int, str]) -> Dict[int, str]:
    """
    Class ids must be exactly 0..C-1 so boxes can be grouped by index.
    """

    if not names:
        raise PipelineConfigError("Class taxonomy is empty.")
    expected = set(range(len(names)))
    if set(names.keys()) != expected:
        missing = sorted(expected - set(names.keys()))
        raise PipelineConfigError(f"Class ids must be contiguous from 0; missing {missing[:10]}")
    return {int(k): str(v) for k, v in sorted(names.items())}


def class_label(names: Mapping[int, str], class_id: int) -> str:
    return names.get(class_id, str(class_id))

