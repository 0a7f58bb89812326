from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .common import Result
from .errors import YoloV5Error


def _element_size(dtype: Any) -> int:
    import torch  # type: ignore

    return torch.empty((), dtype=dtype).element_size()


@dataclass(frozen=True)
class EngineBinding:
    """
    A named, fixed-shape input or output tensor slot of a loaded engine.
    """

    name: str
    index: int
    shape: Tuple[int, ...]
    is_input: bool
    dtype: Any  # torch dtype

    @property
    def volume(self) -> int:
        return int(np.prod(self.shape)) if self.shape else 0

    @property
    def nbytes(self) -> int:
        return self.volume * _element_size(self.dtype)

    @property
    def is_dynamic(self) -> bool:
        return any(int(d) <= 0 for d in self.shape)

    def describe(self) -> str:
        kind = "input" if self.is_input else "output"
        dims = "x".join(str(d) for d in self.shape)
        return f"{kind} binding {self.index} '{self.name}': {dims} ({self.volume} elements, {self.nbytes} bytes)"


class DeviceMemory:
    """
    One device allocation per binding, made once per loaded engine.
    """

    def __init__(self) -> None:
        self._buffers: Dict[str, Any] = {}

    @property
    def is_allocated(self) -> bool:
        return bool(self._buffers)

    def allocate(self, bindings: List[EngineBinding], device: str) -> None:
        import torch  # type: ignore

        if self._buffers:
            raise YoloV5Error(Result.FAILURE_OTHER, "device memory is already allocated")
        try:
            for b in bindings:
                self._buffers[b.name] = torch.zeros(size=b.shape, dtype=b.dtype, device=torch.device(device))
        except RuntimeError as e:
            self._buffers.clear()
            raise YoloV5Error(Result.FAILURE_CUDA_ERROR, f"could not allocate device memory: {e}") from e

    def __getitem__(self, name: str) -> Any:
        return self._buffers[name]

    def buffers(self) -> Dict[str, Any]:
        return dict(self._buffers)

    def free(self) -> None:
        self._buffers.clear()


@dataclass
class EngineResources:
    """
    Everything tied to one loaded engine.

    Built in one go by the detector and released by `release()` in a fixed
    order: execution context, device memory, then the engine itself.
    """

    engine: Any
    context: Any
    input_binding: EngineBinding
    output_binding: EngineBinding
    device_memory: DeviceMemory
    host_output: np.ndarray
    released: bool = field(default=False)

    @property
    def max_batch_size(self) -> int:
        return int(self.input_binding.shape[0])

    @property
    def input_size(self) -> Tuple[int, int]:
        """(w, h) of the model input."""
        return int(self.input_binding.shape[3]), int(self.input_binding.shape[2])

    @property
    def num_classes(self) -> int:
        return int(self.output_binding.shape[2]) - 5

    def input_buffer(self) -> Any:
        return self.device_memory[self.input_binding.name]

    def output_buffer(self) -> Any:
        return self.device_memory[self.output_binding.name]

    def release(self) -> None:
        if self.released:
            return
        self.context.release()
        self.context = None
        self.device_memory.free()
        self.engine.release()
        self.engine = None
        self.released = True


def validate_bindings(bindings: List[EngineBinding]) -> Tuple[EngineBinding, EngineBinding]:
    """
    Check the engine exposes exactly one (N, 3, H, W) input and one
    (N, boxes, 5 + C) output with fixed dimensions.
    """

    inputs = [b for b in bindings if b.is_input]
    outputs = [b for b in bindings if not b.is_input]
    if len(inputs) != 1 or len(outputs) != 1:
        raise YoloV5Error(
            Result.FAILURE_MODEL_ERROR,
            f"expected exactly one input and one output binding, got {len(inputs)} inputs and {len(outputs)} outputs",
        )

    inp, out = inputs[0], outputs[0]
    if inp.is_dynamic or out.is_dynamic:
        raise YoloV5Error(Result.FAILURE_MODEL_ERROR, "engine bindings must have fixed shapes")
    if len(inp.shape) != 4 or inp.shape[1] != 3:
        raise YoloV5Error(Result.FAILURE_MODEL_ERROR, f"unexpected input shape {inp.shape}, expected (N, 3, H, W)")
    if len(out.shape) != 3 or out.shape[2] < 6:
        raise YoloV5Error(Result.FAILURE_MODEL_ERROR, f"unexpected output shape {out.shape}, expected (N, boxes, 5 + C)")
    if out.shape[0] != inp.shape[0]:
        raise YoloV5Error(
            Result.FAILURE_MODEL_ERROR, f"input batch {inp.shape[0]} does not match output batch {out.shape[0]}"
        )
    return inp, out


def create_resources(engine: Any, device: str) -> EngineResources:
    """
    Validate the bindings of a deserialized engine and allocate everything
    needed to run it. On failure nothing is left allocated.
    """

    inp, out = validate_bindings(engine.bindings())

    memory = DeviceMemory()
    memory.allocate([inp, out], device)
    try:
        context = engine.create_context()
    except Exception:
        memory.free()
        raise
    if context is None:
        memory.free()
        raise YoloV5Error(Result.FAILURE_BACKEND_ERROR, "could not create execution context")

    host_output = np.zeros(out.shape, dtype=np.float32)
    return EngineResources(
        engine=engine,
        context=context,
        input_binding=inp,
        output_binding=out,
        device_memory=memory,
        host_output=host_output,
    )
