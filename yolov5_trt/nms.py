from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: int = 300


def iou(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Intersection over union of two xyxy boxes.

    0.0 when the boxes do not overlap or either has non-positive area.
    """

    ax1, ay1, ax2, ay2 = (float(v) for v in a)
    bx1, by1, bx2, by2 = (float(v) for v in b)
    if ax2 <= ax1 or ay2 <= ay1 or bx2 <= bx1 or by2 <= by1:
        return 0.0

    inter = max(0.0, min(ax2, bx2) - max(ax1, bx1)) * max(0.0, min(ay2, by2) - max(ay1, by1))
    if inter <= 0.0:
        return 0.0
    return inter / ((ax2 - ax1) * (ay2 - ay1) + (bx2 - bx1) * (by2 - by1) - inter)


def _box_areas(boxes: np.ndarray) -> np.ndarray:
    return np.maximum(0.0, boxes[:, 2] - boxes[:, 0]) * np.maximum(0.0, boxes[:, 3] - boxes[:, 1])


def _iou_one_to_many(box: np.ndarray, area: float, others: np.ndarray, other_areas: np.ndarray) -> np.ndarray:
    top_left = np.maximum(box[:2], others[:, :2])
    bottom_right = np.minimum(box[2:], others[:, 2:])
    inter = np.prod(np.clip(bottom_right - top_left, 0.0, None), axis=1)
    union = area + other_areas - inter
    return np.where(union > 0, inter / np.maximum(union, 1e-12), 0.0)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NMS over (N, 4) xyxy boxes and (N,) scores.

    Returns indices of kept boxes, highest score first. A box is suppressed
    when its IoU with a kept box is strictly greater than `cfg.iou_threshold`.
    Equal scores keep their input order.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    areas = _box_areas(boxes)
    remaining = np.argsort(-scores, kind="stable")
    keep = []

    while remaining.size > 0 and len(keep) < cfg.max_detections:
        best, rest = remaining[0], remaining[1:]
        keep.append(best)
        overlap = _iou_one_to_many(boxes[best], areas[best], boxes[rest], areas[rest])
        remaining = rest[overlap <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def batched_nms(boxes: np.ndarray, scores: np.ndarray, class_ids: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Class-wise NMS: boxes only suppress boxes of the same class.

    Returns kept indices ordered by ascending class id, then score descending,
    truncated to `cfg.max_detections`.
    """

    kept = []
    for cls in np.unique(class_ids):
        (members,) = np.nonzero(class_ids == cls)
        kept.extend(members[nms(boxes[members], scores[members], cfg)].tolist())
        if len(kept) >= cfg.max_detections:
            break

    return np.array(kept[: cfg.max_detections], dtype=np.int64)
