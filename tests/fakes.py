"""In-process stand-ins for an inference runtime, running on CPU torch tensors."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch

from yolov5_trt.backends.base import ExecutionContext, InferenceRuntime, LoadedEngine
from yolov5_trt.common import Result
from yolov5_trt.engine import EngineBinding
from yolov5_trt.errors import YoloV5Error
from yolov5_trt.log import Logger, LogLevel

# (cx, cy, w, h, objectness, class_id, class_score) in model-input pixels
Row = Tuple[float, float, float, float, float, int, float]


def make_predictions(per_image: Sequence[Sequence[Row]], num_boxes: int, num_classes: int) -> np.ndarray:
    out = np.zeros((len(per_image), num_boxes, 5 + num_classes), dtype=np.float32)
    for i, rows in enumerate(per_image):
        for j, (cx, cy, w, h, obj, cls, score) in enumerate(rows):
            out[i, j, :5] = (cx, cy, w, h, obj)
            out[i, j, 5 + cls] = score
    return out


class FakeContext(ExecutionContext):
    def __init__(self, engine: "FakeEngine"):
        self.engine = engine
        self.calls: List[int] = []
        self.last_input: Optional[torch.Tensor] = None
        self.released = False

    def execute(self, batch_size: int, buffers: Dict[str, torch.Tensor]) -> bool:
        if self.engine.fail_execute:
            return False
        self.calls.append(batch_size)
        self.last_input = buffers["images"].clone()
        preds = torch.from_numpy(self.engine.predictions)
        buffers["output0"][: preds.shape[0]].copy_(preds)
        return True

    def release(self) -> None:
        self.released = True
        self.engine.events.append("context")


class FakeEngine(LoadedEngine):
    def __init__(
        self,
        batch: int = 1,
        size: Tuple[int, int] = (64, 64),
        num_boxes: int = 8,
        num_classes: int = 2,
        predictions: Optional[np.ndarray] = None,
        bindings: Optional[List[EngineBinding]] = None,
    ):
        w, h = size
        self._bindings = bindings or [
            EngineBinding("images", 0, (batch, 3, h, w), True, torch.float32),
            EngineBinding("output0", 1, (batch, num_boxes, 5 + num_classes), False, torch.float32),
        ]
        if predictions is None:
            predictions = np.zeros((batch, num_boxes, 5 + num_classes), dtype=np.float32)
        self.predictions = predictions
        self.fail_execute = False
        self.contexts: List[FakeContext] = []
        self.events: List[str] = []
        self.released = False

    def bindings(self) -> List[EngineBinding]:
        return list(self._bindings)

    def create_context(self) -> FakeContext:
        ctx = FakeContext(self)
        self.contexts.append(ctx)
        return ctx

    def release(self) -> None:
        self.released = True
        self.events.append("engine")


class FakeRuntime(InferenceRuntime):
    device = "cpu"

    def __init__(self) -> None:
        self.engines: Dict[bytes, FakeEngine] = {}

    def register(self, data: bytes, engine: FakeEngine) -> FakeEngine:
        self.engines[data] = engine
        return engine

    def deserialize(self, data: bytes) -> FakeEngine:
        if data not in self.engines:
            raise YoloV5Error(Result.FAILURE_MODEL_ERROR, "could not deserialize engine")
        return self.engines[data]


class RecordingLogger(Logger):
    def __init__(self) -> None:
        self.records: List[Tuple[LogLevel, str]] = []

    def print(self, level: LogLevel, message: str) -> None:
        self.records.append((level, message))

    def messages(self, level: LogLevel) -> List[str]:
        return [m for lvl, m in self.records if lvl == level]
