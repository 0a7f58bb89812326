from __future__ import annotations

from typing import Any, Dict, List

from ..common import Result
from ..engine import EngineBinding
from ..errors import YoloV5Error
from ..log import Logger, create_tensorrt_logger
from .base import ExecutionContext, InferenceRuntime, LoadedEngine


def _import_tensorrt() -> Any:
    try:
        import tensorrt as trt  # type: ignore
    except ImportError as e:
        raise YoloV5Error(
            Result.FAILURE_BACKEND_ERROR,
            "tensorrt is required for the TensorRT backend. Install NVIDIA TensorRT Python bindings.",
        ) from e
    return trt


def _torch_dtype_from_trt(trt_dtype) -> "object":
    import torch  # type: ignore

    # Avoid importing tensorrt types at module import time; compare by name.
    name = getattr(trt_dtype, "name", str(trt_dtype)).lower()
    if "half" in name or "float16" in name or "fp16" in name:
        return torch.float16
    if "int8" in name:
        return torch.int8
    if "int32" in name:
        return torch.int32
    if "bool" in name:
        return torch.bool
    return torch.float32


class TensorRTContext(ExecutionContext):
    """
    Execution context bound to the detector's device buffers.

    Supports both the tensor-name API (set_tensor_address + execute_async_v3)
    and the classic binding-index API (execute_async_v2).
    """

    def __init__(self, engine: "TensorRTEngine", context: Any):
        self._engine = engine
        self._context = context

    def execute(self, batch_size: int, buffers: Dict[str, Any]) -> bool:
        import torch  # type: ignore

        ctx = self._context
        if ctx is None:
            raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, "execution context was released")

        stream = torch.cuda.current_stream()
        stream_handle = int(stream.cuda_stream)

        # Engines are built with a fixed batch; the whole buffer is always run.
        if self._engine.uses_io_tensors:
            for name, tensor in buffers.items():
                ctx.set_tensor_address(name, int(tensor.data_ptr()))
            ok = ctx.execute_async_v3(stream_handle)
        else:
            bindings: List[int] = [0] * len(buffers)
            for binding in self._engine.bindings():
                bindings[binding.index] = int(buffers[binding.name].data_ptr())
            ok = ctx.execute_async_v2(bindings=bindings, stream_handle=stream_handle)

        stream.synchronize()
        return bool(ok)

    def release(self) -> None:
        self._context = None


class TensorRTEngine(LoadedEngine):
    def __init__(self, engine: Any, trt: Any):
        self._engine = engine
        self._trt = trt
        self.uses_io_tensors = hasattr(engine, "num_io_tensors")
        self._bindings = self._discover_bindings()

    def _discover_bindings(self) -> List[EngineBinding]:
        trt = self._trt
        engine = self._engine
        out: List[EngineBinding] = []

        if self.uses_io_tensors:
            for i in range(engine.num_io_tensors):
                name = engine.get_tensor_name(i)
                out.append(
                    EngineBinding(
                        name=name,
                        index=i,
                        shape=tuple(int(d) for d in engine.get_tensor_shape(name)),
                        is_input=engine.get_tensor_mode(name) == trt.TensorIOMode.INPUT,
                        dtype=_torch_dtype_from_trt(engine.get_tensor_dtype(name)),
                    )
                )
            return out

        # Older binding API
        for i in range(engine.num_bindings):
            out.append(
                EngineBinding(
                    name=engine.get_binding_name(i),
                    index=i,
                    shape=tuple(int(d) for d in engine.get_binding_shape(i)),
                    is_input=bool(engine.binding_is_input(i)),
                    dtype=_torch_dtype_from_trt(engine.get_binding_dtype(i)),
                )
            )
        return out

    def bindings(self) -> List[EngineBinding]:
        return list(self._bindings)

    def create_context(self) -> TensorRTContext:
        context = self._engine.create_execution_context()
        if context is None:
            raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, "could not create TensorRT execution context")
        return TensorRTContext(self, context)

    def release(self) -> None:
        self._engine = None


class TensorRTRuntime(InferenceRuntime):
    """
    TensorRT runtime. Device buffers are torch CUDA tensors (no PyCUDA).
    """

    device = "cuda"

    def __init__(self, logger: Logger):
        trt = _import_tensorrt()

        import torch  # type: ignore

        if not torch.cuda.is_available():
            raise YoloV5Error(Result.FAILURE_CUDA_ERROR, "CUDA is not available in this torch install")

        self._trt = trt
        self._trt_logger = create_tensorrt_logger(logger)
        self._runtime = trt.Runtime(self._trt_logger)

    def deserialize(self, data: bytes) -> TensorRTEngine:
        engine = self._runtime.deserialize_cuda_engine(data)
        if engine is None:
            raise YoloV5Error(Result.FAILURE_MODEL_ERROR, "could not deserialize TensorRT engine")
        return TensorRTEngine(engine, self._trt)
