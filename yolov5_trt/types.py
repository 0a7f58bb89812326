from dataclasses import dataclass
from typing import Tuple


@dataclass
class Detection:
    """
    An object detected in an image.

    `bounding_box` is (x, y, width, height) in pixels of the original image.
    `class_name` stays empty until resolved through a `Classes` table.
    """

    class_id: int = -1
    bounding_box: Tuple[int, int, int, int] = (0, 0, 0, 0)
    score: float = 0.0
    class_name: str = ""

    def set_class_name(self, name: str) -> None:
        self.class_name = name

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        x, y, w, h = self.bounding_box
        return x, y, x + w, y + h
