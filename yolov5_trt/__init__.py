"""
YOLOv5 object detection on TensorRT engines.

Build an engine from an ONNX export with `Builder`, then run it with
`Detector`. Pre/post-processing (letterbox, decode, NMS) only needs NumPy,
OpenCV and torch; TensorRT is imported when an engine is built or loaded.
"""

from .builder import Builder
from .classes import COCO_CLASS_NAMES, Classes
from .common import DetectorFlag, Precision, Result, precision_to_string, result_to_string
from .config import DetectorConfig, load_detector_config
from .detector import Detector
from .letterbox import LetterboxInfo, letterbox
from .log import Logger, LogLevel, StdLogger, loglevel_to_string
from .nms import iou, nms
from .postprocess import YoloPostConfig, YoloPostprocessor
from .types import Detection
from .visualize import draw_detections, visualize_detection

__all__ = [
    "Builder",
    "COCO_CLASS_NAMES",
    "Classes",
    "Detection",
    "Detector",
    "DetectorConfig",
    "DetectorFlag",
    "LetterboxInfo",
    "LogLevel",
    "Logger",
    "Precision",
    "Result",
    "StdLogger",
    "YoloPostConfig",
    "YoloPostprocessor",
    "draw_detections",
    "iou",
    "letterbox",
    "load_detector_config",
    "loglevel_to_string",
    "nms",
    "precision_to_string",
    "result_to_string",
    "visualize_detection",
]
