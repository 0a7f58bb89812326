from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np


@dataclass(frozen=True)
class LetterboxInfo:
    """
    Transform applied to one image by `letterbox`.

    Model-space coordinates map back to the original image with
    `x = (x' - pad[0]) / ratio`, `y = (y' - pad[1]) / ratio`.
    """

    orig_size: Tuple[int, int]  # (w, h) of the source image
    ratio: float
    resized_size: Tuple[int, int]  # (w, h) after scaling, before padding
    pad: Tuple[float, float]  # (dw, dh), left/top; right/bottom are equal up to rounding

    @property
    def border(self) -> Tuple[int, int, int, int]:
        """Integer (top, bottom, left, right) border widths."""
        dw, dh = self.pad
        top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
        left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
        return top, bottom, left, right


def letterbox_geometry(orig_size: Tuple[int, int], new_shape: Tuple[int, int], scaleup: bool = True) -> LetterboxInfo:
    """
    Compute the aspect-preserving resize + centered padding for `orig_size` -> `new_shape`.

    Both sizes are (w, h).
    """

    w, h = orig_size
    new_w, new_h = new_shape
    if w <= 0 or h <= 0:
        raise ValueError(f"Image size must be positive, got {orig_size}")

    # Scale ratio (new / old)
    r = min(new_w / w, new_h / h)
    if not scaleup:  # only scale down
        r = min(r, 1.0)

    # Very thin images keep at least one row/column.
    resized_w, resized_h = max(1, int(round(w * r))), max(1, int(round(h * r)))
    dw, dh = (new_w - resized_w) / 2, (new_h - resized_h) / 2
    return LetterboxInfo(orig_size=(w, h), ratio=r, resized_size=(resized_w, resized_h), pad=(dw, dh))


def letterbox(
    image: np.ndarray,
    new_shape: Tuple[int, int] = (640, 640),
    color: Tuple[int, int, int] = (114, 114, 114),
    scaleup: bool = True,
) -> Tuple[np.ndarray, LetterboxInfo]:
    """
    Resize and pad a HWC host image to `new_shape` (w, h), matching YOLOv5's letterbox.

    Returns:
        padded: resized + padded image, shape (new_h, new_w, C)
        info: the transform, for mapping boxes back
    """
    import cv2  # type: ignore

    h, w = image.shape[:2]
    info = letterbox_geometry((w, h), new_shape, scaleup=scaleup)

    # Resize
    if (w, h) != info.resized_size:
        image = cv2.resize(image, info.resized_size, interpolation=cv2.INTER_LINEAR)

    top, bottom, left, right = info.border
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)
    return padded, info


def letterbox_tensor(image: Any, new_shape: Tuple[int, int] = (640, 640), pad_value: float = 114.0 / 255.0, scaleup: bool = True):
    """
    Device-side letterbox of a CHW float torch tensor (values in [0, 1]).

    Runs on whatever device `image` lives on. Returns (padded CHW tensor, info).
    """
    import torch.nn.functional as F  # type: ignore

    _, h, w = image.shape
    info = letterbox_geometry((int(w), int(h)), new_shape, scaleup=scaleup)

    resized_w, resized_h = info.resized_size
    if (int(w), int(h)) != (resized_w, resized_h):
        image = F.interpolate(
            image.unsqueeze(0),
            size=(resized_h, resized_w),
            mode="bilinear",
            align_corners=False,
        ).squeeze(0)

    top, bottom, left, right = info.border
    padded = F.pad(image, (left, right, top, bottom), mode="constant", value=pad_value)
    return padded, info


def scale_boxes(boxes: np.ndarray, info: LetterboxInfo) -> np.ndarray:
    """
    Map (N, 4) xyxy boxes from model-input space back to the original image.

    Coordinates are clamped to [0, w] and [0, h].
    """

    out = boxes.astype(np.float64, copy=True)
    dw, dh = info.pad
    out[:, [0, 2]] = (out[:, [0, 2]] - dw) / info.ratio
    out[:, [1, 3]] = (out[:, [1, 3]] - dh) / info.ratio

    orig_w, orig_h = info.orig_size
    out[:, [0, 2]] = np.clip(out[:, [0, 2]], 0, orig_w)
    out[:, [1, 3]] = np.clip(out[:, [1, 3]], 0, orig_h)
    return out
