from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from .common import Result
from .errors import YoloV5Error
from .letterbox import LetterboxInfo, letterbox, letterbox_tensor


def _is_torch_tensor(obj: Any) -> bool:
    try:
        import torch  # type: ignore
    except ImportError:
        return False
    return isinstance(obj, torch.Tensor)


def is_device_image(image: Any) -> bool:
    """True for torch tensors (device-resident images), False for host arrays."""
    return _is_torch_tensor(image)


@dataclass(frozen=True)
class Preprocessor:
    """
    Letterboxes images into slots of the model's NCHW input buffer.

    Output per slot: RGB, float in [0, 1], channel-first, padded with
    `pad_color`. Host images (NumPy HWC uint8) are processed with OpenCV;
    device images (torch HWC uint8 tensors) with torch on their own device.
    """

    input_size: Tuple[int, int]  # (w, h)
    pad_color: int = 114

    def _check_shape(self, shape: Tuple[int, ...]) -> None:
        if len(shape) != 3 or shape[2] != 3:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"expected a 3-channel HxWx3 image, got shape {tuple(shape)}")
        if shape[0] <= 0 or shape[1] <= 0:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "image is empty")

    def preprocess_host(self, image: np.ndarray, slot: Any, bgr: bool = True) -> LetterboxInfo:
        import cv2  # type: ignore
        import torch  # type: ignore

        if not isinstance(image, np.ndarray):
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"expected a NumPy image, got {type(image).__name__}")
        self._check_shape(image.shape)

        color = (self.pad_color,) * 3
        try:
            padded, info = letterbox(image, new_shape=self.input_size, color=color)
        except cv2.error as e:
            raise YoloV5Error(Result.FAILURE_OPENCV_ERROR, f"letterbox failed: {e}") from e

        # BGR -> RGB, normalize, HWC -> CHW
        if bgr:
            padded = padded[:, :, ::-1]
        blob = np.ascontiguousarray(padded.transpose(2, 0, 1), dtype=np.float32) / 255.0

        slot.copy_(torch.from_numpy(blob))
        return info

    def preprocess_device(self, image: Any, slot: Any, bgr: bool = True) -> LetterboxInfo:
        if not _is_torch_tensor(image):
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"expected a torch tensor image, got {type(image).__name__}")
        self._check_shape(tuple(int(d) for d in image.shape))

        chw = image.permute(2, 0, 1).float() / 255.0
        if bgr:
            chw = chw.flip(0)
        padded, info = letterbox_tensor(chw, new_shape=self.input_size, pad_value=self.pad_color / 255.0)

        slot.copy_(padded)
        return info
