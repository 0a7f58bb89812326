"""
ONNX -> TensorRT engine builder.

Engines are hardware-specific: build them on the machine (e.g. the Jetson)
that will run them.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from .common import Precision, Result, precision_to_string
from .errors import YoloV5Error, result_boundary
from .log import Logger, create_tensorrt_logger

PathLike = Union[str, Path]


def _import_tensorrt() -> Any:
    try:
        import tensorrt as trt  # type: ignore
    except ImportError as e:
        raise YoloV5Error(
            Result.FAILURE_BACKEND_ERROR,
            "tensorrt is required to build engines. Install NVIDIA TensorRT Python bindings.",
        ) from e
    return trt


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _write_atomic(data: bytes, output_path: Path) -> None:
    """
    Write `data` to a temporary file next to `output_path`, then move it into
    place. A failed write never leaves a partial file at `output_path`.
    """

    directory = output_path.parent if str(output_path.parent) else Path(".")
    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", suffix=".tmp", dir=str(directory))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # mkstemp creates 0600; give the engine the mode a plain open() would.
        os.chmod(tmp_name, 0o666 & ~_current_umask())
        os.replace(tmp_name, output_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


class Builder:
    """
    Compiles an ONNX model into a serialized TensorRT engine file.
    """

    def __init__(self, workspace_size: int = 1 << 20):
        self._initialized = False
        self._logger: Optional[Logger] = None
        self._trt_logger: Any = None
        self.workspace_size = int(workspace_size)

    @result_boundary("Builder", "init")
    def init(self) -> Result:
        if self._logger is None:
            self._logger = Logger()
        if self._trt_logger is None:
            _import_tensorrt()
            self._trt_logger = create_tensorrt_logger(self._logger)
        self._initialized = True
        return Result.SUCCESS

    @result_boundary("Builder", "build_engine")
    def build_engine(self, model_path: PathLike, output_path: PathLike, precision: int = Precision.FP32) -> Result:
        if not self._initialized:
            raise YoloV5Error(Result.FAILURE_NOT_INITIALIZED, "builder is not initialized yet")

        serialized = self._build_engine(Path(model_path), precision)

        out = Path(output_path)
        self._logger.info("[Builder] buildEngine(): writing serialized engine to file: %s", out)
        try:
            _write_atomic(serialized, out)
        except OSError as e:
            raise YoloV5Error(
                Result.FAILURE_FILESYSTEM_ERROR, f"error encountered writing to output file {out}: {e}"
            ) from e
        return Result.SUCCESS

    def _build_engine(self, model_path: Path, precision: int) -> bytes:
        precision_str = precision_to_string(precision)
        if not precision_str:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, f"invalid precision specified: {precision!r}")

        try:
            model_bytes = model_path.read_bytes()
        except OSError as e:
            raise YoloV5Error(Result.FAILURE_MODEL_ERROR, f"could not read model file {model_path}: {e}") from e

        trt = _import_tensorrt()
        builder = trt.Builder(self._trt_logger)
        network = builder.create_network(1 << int(trt.NetworkDefinitionCreationFlag.EXPLICIT_BATCH))
        parser = trt.OnnxParser(network, self._trt_logger)

        if not parser.parse(model_bytes):
            for i in range(parser.num_errors):
                self._logger.error("[Builder] buildEngine(): parser error %d: %s", i, parser.get_error(i))
            raise YoloV5Error(Result.FAILURE_MODEL_ERROR, "could not parse ONNX model from file")

        config = builder.create_builder_config()
        config.set_memory_pool_limit(trt.MemoryPoolType.WORKSPACE, self.workspace_size)

        if precision == Precision.FP16:
            if not builder.platform_has_fast_fp16:
                raise YoloV5Error(
                    Result.FAILURE_INVALID_INPUT, "fp16 precision specified, but not supported by current platform"
                )
            config.set_flag(trt.BuilderFlag.FP16)

        self._logger.info(
            "[Builder] buildEngine(): building and serializing engine at %s precision. This may take a while",
            precision_str,
        )
        serialized = builder.build_serialized_network(network, config)
        if serialized is None:
            raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, "could not build serialized engine")
        return bytes(serialized)

    def is_initialized(self) -> bool:
        return self._initialized

    @result_boundary("Builder", "set_logger")
    def set_logger(self, logger: Optional[Logger]) -> Result:
        if logger is None:
            raise YoloV5Error(Result.FAILURE_INVALID_INPUT, "provided logger is None")
        self._logger = logger
        if self._trt_logger is not None:
            self._trt_logger.sink = logger
        return Result.SUCCESS

    def logger(self) -> Optional[Logger]:
        return self._logger
