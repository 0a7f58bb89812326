from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..common import Result
from ..engine import EngineBinding
from ..errors import YoloV5Error
from .base import ExecutionContext, InferenceRuntime, LoadedEngine


def _torch_dtype_from_ort(type_name: str) -> "object":
    import torch  # type: ignore

    if "float16" in type_name:
        return torch.float16
    return torch.float32


def _fixed_dims(shape: Sequence[Any]) -> tuple:
    # Symbolic dimensions ("batch", None) become -1 and are rejected as dynamic.
    return tuple(int(d) if isinstance(d, int) else -1 for d in shape)


class OnnxRuntimeContext(ExecutionContext):
    def __init__(self, session: Any, input_name: str, output_name: str):
        self._session = session
        self._input_name = input_name
        self._output_name = output_name

    def execute(self, batch_size: int, buffers: Dict[str, Any]) -> bool:
        import torch  # type: ignore

        if self._session is None:
            raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, "execution context was released")

        blob = buffers[self._input_name].detach().cpu().numpy()
        outputs = self._session.run([self._output_name], {self._input_name: blob})
        buffers[self._output_name].copy_(torch.from_numpy(outputs[0]))
        return True

    def release(self) -> None:
        self._session = None


class OnnxRuntimeEngine(LoadedEngine):
    def __init__(self, session: Any):
        self._session = session
        self._bindings: List[EngineBinding] = []
        index = 0
        for node in session.get_inputs():
            self._bindings.append(
                EngineBinding(node.name, index, _fixed_dims(node.shape), True, _torch_dtype_from_ort(node.type))
            )
            index += 1
        for node in session.get_outputs():
            self._bindings.append(
                EngineBinding(node.name, index, _fixed_dims(node.shape), False, _torch_dtype_from_ort(node.type))
            )
            index += 1

    def bindings(self) -> List[EngineBinding]:
        return list(self._bindings)

    def create_context(self) -> OnnxRuntimeContext:
        inp = next(b for b in self._bindings if b.is_input)
        out = next(b for b in self._bindings if not b.is_input)
        return OnnxRuntimeContext(self._session, inp.name, out.name)

    def release(self) -> None:
        self._session = None


class OnnxRuntimeRuntime(InferenceRuntime):
    """
    Runs an ONNX model directly with ONNX Runtime, using host buffers.

    Useful on machines without TensorRT; the "engine" bytes are the ONNX file.
    """

    device = "cpu"

    def __init__(self, providers: Optional[Sequence[str]] = None):
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:
            raise YoloV5Error(
                Result.FAILURE_BACKEND_ERROR,
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime`.",
            ) from e

        self._ort = ort
        self.providers = list(providers) if providers is not None else None

    def deserialize(self, data: bytes) -> OnnxRuntimeEngine:
        try:
            session = self._ort.InferenceSession(bytes(data), providers=self.providers)
        except Exception as e:
            raise YoloV5Error(Result.FAILURE_MODEL_ERROR, f"could not load ONNX model: {e}") from e
        return OnnxRuntimeEngine(session)
