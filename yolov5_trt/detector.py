from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from .backends.base import InferenceRuntime
from .classes import Classes
from .common import DetectorFlag, Result
from .config import DetectorConfig
from .engine import EngineResources, create_resources
from .errors import YoloV5Error, result_boundary
from .log import Logger
from .postprocess import YoloPostConfig, YoloPostprocessor
from .preprocess import Preprocessor, is_device_image
from .types import Detection

PathLike = Union[str, Path]

_COLOR_FLAGS = DetectorFlag.INPUT_BGR | DetectorFlag.INPUT_RGB
_PREPROCESSOR_FLAGS = DetectorFlag.PREPROCESSOR_CUDA | DetectorFlag.PREPROCESSOR_CPU


class Detector:
    """
    YOLOv5 detector running a serialized inference engine.

    Lifecycle: construct -> `init()` -> `load_engine()` -> `detect()` /
    `detect_batch()`. Every public operation returns a `Result` (or a
    `(Result, value)` tuple) instead of raising.

    Images are either NumPy HxWx3 uint8 arrays (host path, OpenCV
    preprocessing) or torch HxWx3 uint8 CUDA tensors (device path, requires
    `DetectorFlag.PREPROCESSOR_CUDA`). With `PREPROCESSOR_CUDA` active, host
    images are uploaded to the engine's device and take the device path too;
    without CUDA support that fails with `FAILURE_NO_DEVICE_PREPROCESSING`.

    A detector is not thread-safe; use one instance per worker thread.
    """

    def __init__(self, runtime: Optional[InferenceRuntime] = None, logger: Optional[Logger] = None):
        self._initialized = False
        self._logger: Logger = logger or Logger()
        self._classes = Classes(self._logger)
        self._score_threshold = 0.4
        self._nms_threshold = 0.45
        self._max_detections = 300
        self._pad_color = 114
        self._flags = DetectorFlag.NONE
        self._runtime = runtime
        self._resources: Optional[EngineResources] = None
        self._preprocessor: Optional[Preprocessor] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @result_boundary("Detector", "init")
    def init(self, flags: int = 0) -> Result:
        if self._runtime is None:
            from .backends.tensorrt_backend import TensorRTRuntime

            self._runtime = TensorRTRuntime(self._logger)
        self._flags = DetectorFlag(flags)
        self._initialized = True
        return Result.SUCCESS

    def is_initialized(self) -> bool:
        return self._initialized

    @result_boundary("Detector", "load_engine")
    def load_engine(self, path: PathLike) -> Result:
        self._require_initialized()
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as e:
            raise YoloV5Error(Result.FAILURE_FILESYSTEM_ERROR, f"could not read engine file {p}: {e}") from e
        return self._load_engine(data)

    @result_boundary("Detector", "load_engine_bytes")
    def load_engine_bytes(self, data: bytes) -> Result:
        self._require_initialized()
        if not data:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "engine data is empty")
        return self._load_engine(bytes(data))

    def _load_engine(self, data: bytes) -> Result:
        # Previous engine goes first so its device memory is never held twice.
        self._release_resources()

        engine = self._runtime.deserialize(data)
        try:
            resources = create_resources(engine, self._runtime.device)
        except Exception:
            engine.release()
            raise

        for binding in (resources.input_binding, resources.output_binding):
            self._logger.info("[Detector] loadEngine(): %s", binding.describe())

        self._resources = resources
        self._preprocessor = Preprocessor(resources.input_size, self._pad_color)
        return Result.SUCCESS

    def is_engine_loaded(self) -> bool:
        return self._resources is not None

    def unload_engine(self) -> Result:
        self._release_resources()
        return Result.SUCCESS

    def close(self) -> None:
        self._release_resources()

    def __enter__(self) -> "Detector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _release_resources(self) -> None:
        resources, self._resources = self._resources, None
        self._preprocessor = None
        if resources is not None:
            resources.release()

    # ------------------------------------------------------------------ #
    # Detection
    # ------------------------------------------------------------------ #
    @result_boundary("Detector", "detect", empty=list)
    def detect(self, image: Any, flags: int = 0) -> Tuple[Result, List[Detection]]:
        return Result.SUCCESS, self._detect_batch([image], flags)[0]

    @result_boundary("Detector", "detect_batch", empty=list)
    def detect_batch(self, images: Sequence[Any], flags: int = 0) -> Tuple[Result, List[List[Detection]]]:
        return Result.SUCCESS, self._detect_batch(list(images), flags)

    def _detect_batch(self, images: List[Any], flags: int) -> List[List[Detection]]:
        resources = self._resources
        if resources is None:
            raise YoloV5Error(Result.FAILURE_NOT_LOADED, "no engine loaded yet")

        count = len(images)
        if count == 0:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "no images given")
        if count > resources.max_batch_size:
            raise YoloV5Error(
                Result.FAILURE_INVALID_INPUT,
                f"got {count} images but the engine's max batch size is {resources.max_batch_size}",
            )

        on_device = [is_device_image(image) for image in images]
        if any(on_device) and not all(on_device):
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "cannot mix host and device images in one batch")

        active = self._active_flags(flags)
        bgr = not (active & DetectorFlag.INPUT_RGB)
        use_device = on_device[0] or bool(active & DetectorFlag.PREPROCESSOR_CUDA)
        if use_device:
            self._check_device_preprocessing(active)

        infos = []
        slots = resources.input_buffer()
        for i, image in enumerate(images):
            if use_device:
                if not on_device[0]:
                    image = self._upload(image, slots.device)
                infos.append(self._preprocessor.preprocess_device(image, slots[i], bgr=bgr))
            else:
                infos.append(self._preprocessor.preprocess_host(image, slots[i], bgr=bgr))

        self._inference(count)

        post = YoloPostprocessor(
            YoloPostConfig(
                conf_threshold=self._score_threshold,
                iou_threshold=self._nms_threshold,
                max_detections=self._max_detections,
            )
        )
        return [post.process(resources.host_output[i], infos[i], self._classes) for i in range(count)]

    def _inference(self, count: int) -> None:
        import torch  # type: ignore

        resources = self._resources
        try:
            ok = resources.context.execute(count, resources.device_memory.buffers())
        except YoloV5Error:
            raise
        except Exception as e:
            raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, f"inference failed: {e}") from e
        if not ok:
            raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, "inference failed")

        staging = torch.from_numpy(resources.host_output)
        staging[:count].copy_(resources.output_buffer()[:count])

    def _active_flags(self, flags: int) -> DetectorFlag:
        call = DetectorFlag(flags)
        color = call & _COLOR_FLAGS or self._flags & _COLOR_FLAGS
        preprocessor = call & _PREPROCESSOR_FLAGS or self._flags & _PREPROCESSOR_FLAGS
        return DetectorFlag(color | preprocessor)

    def _check_device_preprocessing(self, flags: DetectorFlag) -> None:
        if not flags & DetectorFlag.PREPROCESSOR_CUDA:
            raise YoloV5Error(
                Result.FAILURE_NO_DEVICE_PREPROCESSING,
                "device image given but PREPROCESSOR_CUDA preprocessing was not requested",
            )
        import torch  # type: ignore

        if not torch.cuda.is_available():
            raise YoloV5Error(Result.FAILURE_NO_DEVICE_PREPROCESSING, "torch was built without CUDA support")

    @staticmethod
    def _upload(image: Any, device: Any) -> Any:
        import torch  # type: ignore

        if not isinstance(image, np.ndarray):
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"expected a NumPy image, got {type(image).__name__}")
        return torch.from_numpy(np.ascontiguousarray(image)).to(device)

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise YoloV5Error(Result.FAILURE_NOT_INITIALIZED, "detector is not initialized yet")

    # ------------------------------------------------------------------ #
    # Settings
    # ------------------------------------------------------------------ #
    def num_classes(self) -> int:
        return self._resources.num_classes if self._resources is not None else 0

    def batch_size(self) -> int:
        return self._resources.max_batch_size if self._resources is not None else 0

    def inference_size(self) -> Tuple[int, int]:
        """(w, h) of the model input, (0, 0) when no engine is loaded."""
        return self._resources.input_size if self._resources is not None else (0, 0)

    @result_boundary("Detector", "set_classes")
    def set_classes(self, classes: Classes) -> Result:
        if not classes.is_loaded():
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "class table is empty")
        self._classes = classes.copy()
        self._classes.set_logger(self._logger)
        return Result.SUCCESS

    def classes(self) -> Classes:
        return self._classes

    def score_threshold(self) -> float:
        return self._score_threshold

    @result_boundary("Detector", "set_score_threshold")
    def set_score_threshold(self, value: float) -> Result:
        if not 0.0 <= value <= 1.0:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"score threshold {value} is outside [0, 1]")
        self._score_threshold = float(value)
        return Result.SUCCESS

    def nms_threshold(self) -> float:
        return self._nms_threshold

    @result_boundary("Detector", "set_nms_threshold")
    def set_nms_threshold(self, value: float) -> Result:
        if not 0.0 <= value <= 1.0:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"nms threshold {value} is outside [0, 1]")
        self._nms_threshold = float(value)
        return Result.SUCCESS

    def configure(self, cfg: DetectorConfig) -> Result:
        self._score_threshold = cfg.score_threshold
        self._nms_threshold = cfg.nms_threshold
        self._max_detections = cfg.max_detections
        self._pad_color = cfg.pad_color
        self._flags = cfg.to_flags()
        if self._resources is not None:
            self._preprocessor = Preprocessor(self._resources.input_size, self._pad_color)
        return Result.SUCCESS

    @result_boundary("Detector", "set_logger")
    def set_logger(self, logger: Optional[Logger]) -> Result:
        if logger is None:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "provided logger is None")
        self._logger = logger
        self._classes.set_logger(logger)
        return Result.SUCCESS

    def logger(self) -> Logger:
        return self._logger
