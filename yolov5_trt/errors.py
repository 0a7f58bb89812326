from __future__ import annotations

import functools
from typing import Any, Callable, Optional, TypeVar

from .common import Result

F = TypeVar("F", bound=Callable[..., Any])


class YoloV5Error(Exception):
    """
    Internal failure carrying the `Result` it maps to at the public boundary.
    """

    def __init__(self, result: Result, message: str):
        super().__init__(message)
        self.result = Result(result)
        self.message = message


def result_boundary(component: str, operation: str, empty: Optional[Callable[[], Any]] = None) -> Callable[[F], F]:
    """
    Convert exceptions escaping a public method into a `Result`.

    The wrapped method returns either a bare `Result` or a `(Result, value)`
    tuple. When `empty` is given, failures return `(result, empty())`.
    Failures are logged through `self._logger` when one is set.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except YoloV5Error as e:
                result, detail = e.result, e.message
            except MemoryError as e:
                result, detail = Result.FAILURE_ALLOC, f"out of memory: {e}"
            except Exception as e:
                result, detail = Result.FAILURE_OTHER, f"got exception: {type(e).__name__}: {e}"

            logger = getattr(self, "_logger", None)
            if logger is not None:
                logger.error("[%s] %s() failure: %s", component, operation, detail)
            if empty is not None:
                return result, empty()
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
