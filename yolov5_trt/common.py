from __future__ import annotations

from enum import IntEnum, IntFlag


class Result(IntEnum):
    """
    Outcome of every public operation in this package.

    Negative values are failures. The numeric codes are stable and may be used
    as process exit statuses or stored in logs.
    """

    # Caller violated a precondition (bad precision, oversized batch, ...).
    FAILURE_INVALID_INPUT = -100
    FAILURE_NOT_INITIALIZED = -90
    # No engine loaded yet.
    FAILURE_NOT_LOADED = -80
    # Loaded model/engine is unusable (missing bindings, parse failure).
    FAILURE_MODEL_ERROR = -70
    FAILURE_FILESYSTEM_ERROR = -50
    FAILURE_CUDA_ERROR = -40
    # The inference/compilation library itself reported failure.
    FAILURE_BACKEND_ERROR = -30
    # Device-resident image given but device preprocessing is not available.
    FAILURE_NO_DEVICE_PREPROCESSING = -21
    FAILURE_OPENCV_ERROR = -20
    FAILURE_ALLOC = -11
    FAILURE_OTHER = -10
    SUCCESS = 0


_RESULT_STRINGS = {
    Result.FAILURE_INVALID_INPUT: "invalid input",
    Result.FAILURE_NOT_INITIALIZED: "not initialized",
    Result.FAILURE_NOT_LOADED: "not loaded",
    Result.FAILURE_MODEL_ERROR: "model error",
    Result.FAILURE_FILESYSTEM_ERROR: "filesystem error",
    Result.FAILURE_CUDA_ERROR: "cuda error",
    Result.FAILURE_BACKEND_ERROR: "backend error",
    Result.FAILURE_NO_DEVICE_PREPROCESSING: "device preprocessing unavailable",
    Result.FAILURE_OPENCV_ERROR: "opencv error",
    Result.FAILURE_ALLOC: "alloc error",
    Result.FAILURE_OTHER: "other error",
    Result.SUCCESS: "success",
}


def result_to_string(r: int) -> str:
    """Human-readable rendering of a result code ("" for unknown codes)."""
    try:
        return _RESULT_STRINGS[Result(r)]
    except ValueError:
        return ""


class Precision(IntEnum):
    FP32 = 0
    FP16 = 1


_PRECISION_STRINGS = {
    Precision.FP32: "fp32",
    Precision.FP16: "fp16",
}


def precision_to_string(p: int) -> str:
    try:
        return _PRECISION_STRINGS[Precision(p)]
    except ValueError:
        return ""


def precision_from_string(name: str) -> Precision:
    key = name.strip().lower()
    for precision, text in _PRECISION_STRINGS.items():
        if text == key:
            return precision
    raise ValueError(f"Unknown precision: {name!r}. Use 'fp32' or 'fp16'")


class DetectorFlag(IntFlag):
    """
    Flags accepted by `Detector.init()` and the detect calls.
    """

    NONE = 0
    # Input image is BGR (OpenCV default).
    INPUT_BGR = 1
    INPUT_RGB = 2
    # Preprocess device-resident images on the GPU.
    PREPROCESSOR_CUDA = 4
    PREPROCESSOR_CPU = 8
