from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .common import DetectorFlag

_COLOR_ORDERS = ("bgr", "rgb")
_PREPROCESSORS = ("cpu", "cuda")


@dataclass(frozen=True)
class DetectorConfig:
    score_threshold: float = 0.4
    nms_threshold: float = 0.45
    max_detections: int = 300
    input_color: str = "bgr"
    preprocessor: str = "cpu"
    pad_color: int = 114

    def __post_init__(self) -> None:
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be in [0, 1]")
        if not 0.0 <= self.nms_threshold <= 1.0:
            raise ValueError("nms_threshold must be in [0, 1]")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")
        if self.input_color not in _COLOR_ORDERS:
            raise ValueError(f"input_color must be one of {_COLOR_ORDERS}")
        if self.preprocessor not in _PREPROCESSORS:
            raise ValueError(f"preprocessor must be one of {_PREPROCESSORS}")
        if not 0 <= self.pad_color <= 255:
            raise ValueError("pad_color must be in [0, 255]")

    def to_flags(self) -> DetectorFlag:
        flags = DetectorFlag.INPUT_RGB if self.input_color == "rgb" else DetectorFlag.INPUT_BGR
        if self.preprocessor == "cuda":
            flags |= DetectorFlag.PREPROCESSOR_CUDA
        else:
            flags |= DetectorFlag.PREPROCESSOR_CPU
        return flags


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_str(payload: Dict[str, Any], key: str) -> str:
    value = payload[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value.strip().lower()


def detector_config_from_dict(payload: Dict[str, Any]) -> DetectorConfig:
    allowed = {
        "score_threshold",
        "nms_threshold",
        "max_detections",
        "input_color",
        "preprocessor",
        "pad_color",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in ("score_threshold", "nms_threshold"):
        if key in payload:
            kwargs[key] = _require_number(payload, key)
    for key in ("max_detections", "pad_color"):
        if key in payload:
            kwargs[key] = _require_int(payload, key)
    for key in ("input_color", "preprocessor"):
        if key in payload:
            kwargs[key] = _require_str(payload, key)
    return DetectorConfig(**kwargs)


def load_detector_config(path: Path) -> DetectorConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detector config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector config must be a JSON object")
    return detector_config_from_dict(payload)
