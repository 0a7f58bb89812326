from __future__ import annotations

from typing import Iterable, Optional, Tuple

import numpy as np

from .common import Result
from .types import Detection

# YOLOv5's plotting palette, RGB hex.
_PALETTE_HEX = (
    "FF3838", "FF9D97", "FF701F", "FFB21D", "CFD231", "48F90A", "92CC17",
    "3DDB86", "1A9334", "00D4BB", "2C99A8", "00C2FF", "344593", "6473FF",
    "0018EC", "8438FF", "520085", "CB38FF", "FF95C8", "FF37C7",
)
_UNKNOWN_CLASS_COLOR = (255, 51, 153)


def _hex_to_bgr(h: str) -> Tuple[int, int, int]:
    r, g, b = (int(h[i : i + 2], 16) for i in (0, 2, 4))
    return b, g, r


_PALETTE = tuple(_hex_to_bgr(h) for h in _PALETTE_HEX)


def _color_for_class_id(class_id: int) -> Tuple[int, int, int]:
    """
    Deterministic BGR color for a class id (OpenCV expects BGR).
    """

    if class_id < 0:
        return _UNKNOWN_CLASS_COLOR
    if class_id < len(_PALETTE):
        return _PALETTE[class_id]

    # Seeded per id so colors past the palette stay stable between frames.
    rng = np.random.default_rng(int(class_id))
    b, g, r = rng.integers(0, 256, size=3)
    return int(b), int(g), int(r)


def _label_for(det: Detection, show_score: bool) -> str:
    name = det.class_name or (str(det.class_id) if det.class_id >= 0 else "object")
    return f"{name}: {det.score:.2f}" if show_score else name


def _draw_one(
    image: np.ndarray,
    det: Detection,
    show_score: bool,
    box_thickness: int,
    font_scale: float,
    font_thickness: int,
) -> None:
    import cv2  # type: ignore

    h, w = image.shape[:2]
    x1, y1, x2, y2 = (int(v) for v in det.as_xyxy())
    x1, x2 = (min(max(v, 0), w - 1) for v in (x1, x2))
    y1, y2 = (min(max(v, 0), h - 1) for v in (y1, y2))

    color = _color_for_class_id(det.class_id)
    cv2.rectangle(image, (x1, y1), (x2, y2), color, thickness=box_thickness)

    label = _label_for(det, show_score)
    (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
    label_h = th + baseline
    # Label sits above the box unless it would leave the image.
    top = y1 - label_h if y1 - label_h >= 0 else y1

    cv2.rectangle(image, (x1, top), (min(x1 + tw, w - 1), min(top + label_h, h - 1)), color, thickness=-1)
    cv2.putText(
        image,
        label,
        (x1, min(top + th, h - 1)),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        (255, 255, 255),
        thickness=font_thickness,
        lineType=cv2.LINE_AA,
    )


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw bounding boxes + labels on an OpenCV BGR image and return a copy.
    """

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    for det in detections:
        _draw_one(out, det, show_score, box_thickness, font_scale, font_thickness)
    return out


def visualize_detection(detections: Iterable[Detection], image: Optional[np.ndarray], fps: int) -> Result:
    """
    Draw detections and an FPS counter onto `image` in place.

    Nothing is drawn when `image` is None.
    """
    import cv2  # type: ignore

    if image is None:
        return Result.SUCCESS

    try:
        cv2.putText(image, f"FPS: {int(fps)}", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1, (0, 255, 0), 2)
        for det in detections:
            _draw_one(image, det, show_score=True, box_thickness=4, font_scale=1.0, font_thickness=2)
    except cv2.error:
        return Result.FAILURE_OPENCV_ERROR
    return Result.SUCCESS
