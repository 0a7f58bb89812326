"""
Logging facade shared by the builder, the detector and the class table.

Any object exposing `print(level, message)` can be used as a sink; subclass
`Logger` and override `print` to redirect output. The default writes one line
per message to stdout.
"""

from __future__ import annotations

import logging
import sys
from enum import IntEnum
from typing import Any, Optional


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


_LEVEL_STRINGS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARNING: "warning",
    LogLevel.ERROR: "error",
}


def loglevel_to_string(level: int) -> str:
    try:
        return _LEVEL_STRINGS[LogLevel(level)]
    except ValueError:
        return ""


class Logger:
    """
    Default sink: `|yolov5|<level>|<message>` on stdout.
    """

    def print(self, level: LogLevel, message: str) -> None:
        print(f"|yolov5|{loglevel_to_string(level)}|{message}", flush=True)

    def log(self, level: LogLevel, message: str, *args: Any) -> None:
        if args:
            message = message % args
        self.print(level, message)

    def debug(self, message: str, *args: Any) -> None:
        self.log(LogLevel.DEBUG, message, *args)

    def info(self, message: str, *args: Any) -> None:
        self.log(LogLevel.INFO, message, *args)

    def warning(self, message: str, *args: Any) -> None:
        self.log(LogLevel.WARNING, message, *args)

    def error(self, message: str, *args: Any) -> None:
        self.log(LogLevel.ERROR, message, *args)


_STD_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class StdLogger(Logger):
    """
    Forwards messages to the stdlib `logging` module.
    """

    def __init__(self, name: str = "yolov5_trt", std_logger: Optional[logging.Logger] = None):
        self.std_logger = std_logger or logging.getLogger(name)

    def print(self, level: LogLevel, message: str) -> None:
        self.std_logger.log(_STD_LEVELS.get(LogLevel(level), logging.INFO), message)


_HANDLER_ATTR = "_yolov5_trt_console_handler"


def setup_logging(level: int = logging.INFO) -> None:
    """
    Attach a console handler to the `yolov5_trt` stdlib logger.

    Idempotent: calling it again only updates the level.
    """

    root = logging.getLogger("yolov5_trt")
    root.setLevel(level)
    for h in root.handlers:
        if getattr(h, _HANDLER_ATTR, False):
            h.setLevel(level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("[%(asctime)s] %(name)s %(levelname)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)


def tensorrt_severity_to_level(severity: Any) -> LogLevel:
    # Compare by name so this works without importing tensorrt.
    name = getattr(severity, "name", str(severity)).upper()
    if "ERROR" in name:
        return LogLevel.ERROR
    if "WARNING" in name:
        return LogLevel.WARNING
    if "INFO" in name:
        return LogLevel.INFO
    return LogLevel.DEBUG


def create_tensorrt_logger(logger: Logger) -> Any:
    """
    Build a `tensorrt.ILogger` that feeds TensorRT diagnostics into `logger`.
    """

    import tensorrt as trt  # type: ignore

    class _TensorRTLogger(trt.ILogger):
        def __init__(self, sink: Logger):
            trt.ILogger.__init__(self)
            self.sink = sink

        def log(self, severity, msg):
            self.sink.log(tensorrt_severity_to_level(severity), "[TensorRT] %s", msg)

    return _TensorRTLogger(logger)
