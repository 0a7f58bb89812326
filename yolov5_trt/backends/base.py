"""Interfaces the detector expects from an inference runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..engine import EngineBinding


class ExecutionContext(ABC):
    @abstractmethod
    def execute(self, batch_size: int, buffers: Dict[str, Any]) -> bool:
        """Run a forward pass on the bound buffers and block until done."""
        ...

    def release(self) -> None:
        """Destroy the context. Must be called before the engine is released."""


class LoadedEngine(ABC):
    @abstractmethod
    def bindings(self) -> List[EngineBinding]:
        ...

    @abstractmethod
    def create_context(self) -> ExecutionContext:
        ...

    def release(self) -> None:
        """Destroy the engine."""


class InferenceRuntime(ABC):
    # torch device the engine's buffers must live on
    device: str = "cuda"

    @abstractmethod
    def deserialize(self, data: bytes) -> LoadedEngine:
        """Turn a serialized engine into a loaded one (YoloV5Error on failure)."""
        ...
