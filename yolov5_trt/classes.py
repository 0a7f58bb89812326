from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .common import Result
from .errors import YoloV5Error, result_boundary
from .log import Logger
from .metadata import load_class_names

COCO_CLASS_NAMES: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck",
    "boat", "traffic light", "fire hydrant", "stop sign", "parking meter", "bench",
    "bird", "cat", "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra",
    "giraffe", "backpack", "umbrella", "handbag", "tie", "suitcase", "frisbee",
    "skis", "snowboard", "sports ball", "kite", "baseball bat", "baseball glove",
    "skateboard", "surfboard", "tennis racket", "bottle", "wine glass", "cup",
    "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich", "orange",
    "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch",
    "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear",
    "hair drier", "toothbrush",
)


class Classes:
    """
    Maps class ids of the model to readable names, such as "person" or
    "suitcase". Starts out with the 80 COCO classes YOLOv5 is trained on.
    """

    def __init__(self, logger: Optional[Logger] = None):
        self._logger = logger
        self._names: List[str] = list(COCO_CLASS_NAMES)

    @result_boundary("Classes", "load")
    def load(self, names: Sequence[str]) -> Result:
        names = list(names)
        if not names:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "specified list of class names is empty")
        self._names = [str(n) for n in names]
        if self._logger is not None:
            self._logger.info("[Classes] Loaded %d classes", len(self._names))
        return Result.SUCCESS

    @result_boundary("Classes", "load_file")
    def load_file(self, path: Union[str, Path]) -> Result:
        p = Path(path)
        if not p.is_file():
            raise YoloV5Error(Result.FAILURE_FILESYSTEM_ERROR, f"class name file not found: {p}")
        try:
            names = load_class_names(p)
        except OSError as e:
            raise YoloV5Error(Result.FAILURE_FILESYSTEM_ERROR, f"could not read {p}: {e}") from e
        except ValueError as e:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, str(e)) from e
        return self.load(names)

    def is_loaded(self) -> bool:
        return len(self._names) > 0

    def size(self) -> int:
        return len(self._names)

    def names(self) -> List[str]:
        return list(self._names)

    @result_boundary("Classes", "get_name", empty=str)
    def get_name(self, class_id: int) -> Tuple[Result, str]:
        if class_id < 0 or class_id >= len(self._names):
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"no info about specified classId '{class_id}'")
        return Result.SUCCESS, self._names[class_id]

    def set_logger(self, logger: Optional[Logger]) -> None:
        self._logger = logger

    def copy(self) -> "Classes":
        other = Classes(self._logger)
        other._names = list(self._names)
        return other
