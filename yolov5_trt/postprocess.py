from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .classes import Classes
from .common import Result
from .letterbox import LetterboxInfo, scale_boxes
from .nms import NMSConfig, batched_nms
from .types import Detection


def xywh2xyxy(x: np.ndarray) -> np.ndarray:
    """(N, 4) center-x, center-y, width, height -> (N, 4) x1, y1, x2, y2."""
    y = np.empty_like(x)
    half_wh = x[:, 2:4] / 2
    y[:, :2] = x[:, :2] - half_wh
    y[:, 2:] = x[:, :2] + half_wh
    return y


@dataclass
class YoloPostConfig:
    """
    Decode settings for YOLOv5 output.

    Candidates with confidence strictly below `conf_threshold` are dropped;
    NMS suppresses boxes whose IoU is strictly above `iou_threshold`.
    """

    conf_threshold: float = 0.4
    iou_threshold: float = 0.45
    max_detections: int = 300


class YoloPostprocessor:
    """
    Decodes the raw YOLOv5 output of one image:

    (N, 5 + C) rows of [cx, cy, w, h, obj, class_scores...] in model-input
    pixel space.

    Output detections are ordered by ascending class id, then by confidence
    descending within each class.
    """

    def __init__(self, cfg: YoloPostConfig):
        self.cfg = cfg

    def process(
        self,
        preds: np.ndarray,
        info: LetterboxInfo,
        classes: Optional[Classes] = None,
    ) -> List[Detection]:
        """
        Convert raw model output into filtered detections in original image coordinates.

        Args:
            preds: model output for a single image, shape (N, 5 + C)
            info: letterbox transform recorded during preprocessing
            classes: optional table used to fill in `class_name`
        """

        boxes_xyxy, scores, class_ids = self._decode(preds)

        # Filter by score
        keep = scores >= self.cfg.conf_threshold
        boxes_xyxy, scores, class_ids = boxes_xyxy[keep], scores[keep], class_ids[keep]
        if scores.size == 0:
            return []

        # Scale boxes back to original image
        boxes_xyxy = scale_boxes(boxes_xyxy, info)

        nms_cfg = NMSConfig(iou_threshold=self.cfg.iou_threshold, max_detections=self.cfg.max_detections)
        kept = batched_nms(boxes_xyxy, scores, class_ids, nms_cfg)

        detections = []
        for i in kept:
            x1, y1, x2, y2 = boxes_xyxy[i]
            x, y = int(round(x1)), int(round(y1))
            det = Detection(
                class_id=int(class_ids[i]),
                bounding_box=(x, y, int(round(x2)) - x, int(round(y2)) - y),
                score=float(scores[i]),
            )
            if classes is not None and classes.is_loaded():
                r, name = classes.get_name(det.class_id)
                if r == Result.SUCCESS:
                    det.set_class_name(name)
            detections.append(det)
        return detections

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _decode(self, preds: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Split YOLOv5 rows into xyxy boxes, confidences and class ids.
        """

        p = np.asarray(preds, dtype=np.float32)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise ValueError(f"Expected output of a single image, got shape {p.shape}")
            p = p[0]
        if p.ndim != 2 or p.shape[1] < 6:
            raise ValueError(f"Unsupported YOLOv5 output shape: {p.shape}")

        cls = p[:, 5:]
        # first index wins on ties
        class_ids = cls.argmax(axis=1)
        scores = p[:, 4] * np.take_along_axis(cls, class_ids[:, None], axis=1)[:, 0]
        return xywh2xyxy(p[:, :4]), scores, class_ids
