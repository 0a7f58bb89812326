"""
Inference runtimes for yolov5_trt.

Backends are kept in a separate module so core functionality (pre/post-processing)
stays lightweight and can be used without installing inference runtimes.
"""

from __future__ import annotations

from .base import ExecutionContext, InferenceRuntime, LoadedEngine

__all__ = ["ExecutionContext", "InferenceRuntime", "LoadedEngine"]
