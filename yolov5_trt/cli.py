"""
Command line front ends.

    yolov5-build --onnx yolov5s.onnx --precision fp16
    yolov5-detect --onnx yolov5s.onnx --video video.mp4 --show
"""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from .builder import Builder
from .classes import Classes
from .common import DetectorFlag, Precision, Result, precision_from_string, result_to_string
from .config import DetectorConfig, load_detector_config
from .detector import Detector
from .errors import YoloV5Error
from .log import Logger, StdLogger, setup_logging
from .types import Detection
from .visualize import visualize_detection

WINDOW_NAME = "yolov5_tensorrt"


def _failed(operation: str, r: Result) -> int:
    print(f"{operation}() failed: {result_to_string(r)}")
    return 1


def _make_logger(std_logging: bool) -> Logger:
    if std_logging:
        setup_logging(logging.DEBUG)
        return StdLogger()
    return Logger()


def build_engine_file(
    onnx_path: Path,
    engine_path: Path,
    precision: Precision,
    workspace_mb: int,
    logger: Optional[Logger] = None,
) -> int:
    builder = Builder(workspace_size=int(workspace_mb) << 20)
    if logger is not None:
        builder.set_logger(logger)
    r = builder.init()
    if r != Result.SUCCESS:
        return _failed("init", r)

    r = builder.build_engine(onnx_path, engine_path, precision)
    if r != Result.SUCCESS:
        return _failed("buildEngine", r)
    return 0


def _add_build_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--onnx", required=True, help="Path to the YOLOv5 ONNX model (e.g. yolov5s.onnx).")
    parser.add_argument(
        "--engine",
        default=None,
        help="Output engine path. Default: same as --onnx but with .engine extension.",
    )
    parser.add_argument("--precision", default="fp16", choices=["fp32", "fp16"], help="Engine precision.")
    parser.add_argument("--workspace-mb", type=int, default=1024, help="TensorRT workspace size in MB.")
    parser.add_argument("--std-logging", action="store_true", help="Route logs through the logging module.")


def build_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Build a TensorRT engine from a YOLOv5 ONNX model.\n\n"
            "Build the engine on the target device because TRT engines are hardware-specific."
        )
    )
    _add_build_args(parser)
    args = parser.parse_args(argv)

    if args.workspace_mb < 1:
        parser.error("--workspace-mb must be >= 1")

    onnx_path = Path(args.onnx)
    engine_path = Path(args.engine) if args.engine else onnx_path.with_suffix(".engine")
    code = build_engine_file(
        onnx_path, engine_path, precision_from_string(args.precision), args.workspace_mb, _make_logger(args.std_logging)
    )
    if code == 0:
        print(f"wrote {engine_path}")
    return code


def _print_detections(detections: List[Detection]) -> None:
    print("Object detected: " + "  ".join(d.class_name or str(d.class_id) for d in detections))


def _resolve_config(args: argparse.Namespace) -> DetectorConfig:
    cfg = load_detector_config(Path(args.config)) if args.config else DetectorConfig()
    overrides = {}
    if args.conf is not None:
        overrides["score_threshold"] = args.conf
    if args.iou is not None:
        overrides["nms_threshold"] = args.iou
    return replace(cfg, **overrides) if overrides else cfg


def detect_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run YOLOv5 detection on an image, video file or camera.")
    _add_build_args(parser)
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--camera", type=int, default=None, help="Camera index (e.g., 0).")
    parser.add_argument(
        "--backend", default="tensorrt", choices=["tensorrt", "onnxruntime"], help="Inference runtime to use."
    )
    parser.add_argument("--config", default=None, help="Optional detector config JSON.")
    parser.add_argument("--conf", type=float, default=None, help="Score threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--classes", default=None, help="Class name file (.names or metadata .yaml).")
    parser.add_argument("--show", action="store_true", help="Show a window with visualized detections.")
    parser.add_argument("--out", default=None, help="Optional output path (image or video) for the visualization.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    args = parser.parse_args(argv)

    if args.max_frames < 0:
        parser.error("--max-frames must be >= 0")
    if args.workspace_mb < 1:
        parser.error("--workspace-mb must be >= 1")
    try:
        cfg = _resolve_config(args)
    except (ValueError, FileNotFoundError) as e:
        parser.error(str(e))

    import cv2  # type: ignore

    logger = _make_logger(args.std_logging)
    onnx_path = Path(args.onnx)

    runtime = None
    if args.backend == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeRuntime

        try:
            runtime = OnnxRuntimeRuntime()
        except YoloV5Error as e:
            print(e.message)
            return _failed("init", e.result)
        engine_path = onnx_path
    else:
        engine_path = Path(args.engine) if args.engine else onnx_path.with_suffix(".engine")
        if not engine_path.exists():
            code = build_engine_file(
                onnx_path, engine_path, precision_from_string(args.precision), args.workspace_mb, logger
            )
            if code != 0:
                return code
            print("Successfully built engine file!")

    detector = Detector(runtime=runtime, logger=logger)
    detector.configure(cfg)
    r = detector.init(cfg.to_flags())
    if r != Result.SUCCESS:
        return _failed("init", r)

    r = detector.load_engine(engine_path)
    if r != Result.SUCCESS:
        return _failed("loadEngine", r)

    if args.classes:
        classes = Classes(logger)
        r = classes.load_file(args.classes)
        if r != Result.SUCCESS:
            return _failed("loadClasses", r)
        detector.set_classes(classes)

    with detector:
        if args.image is not None:
            return _run_image(detector, cv2, args)
        return _run_stream(detector, cv2, args)


def _run_image(detector: Detector, cv2, args: argparse.Namespace) -> int:
    image = cv2.imread(args.image)
    if image is None:
        print(f"Failure: could not read image at path: {args.image}")
        return 1

    r, detections = detector.detect(image, DetectorFlag.INPUT_BGR)
    if r != Result.SUCCESS:
        return _failed("detect", r)

    _print_detections(detections)
    visualize_detection(detections, image, fps=0)
    if args.out and not cv2.imwrite(args.out, image):
        print(f"Failure: could not write output image: {args.out}")
        return 1
    if args.show:
        cv2.imshow(WINDOW_NAME, image)
        cv2.waitKey(0)
        cv2.destroyAllWindows()
    return 0


def _run_stream(detector: Detector, cv2, args: argparse.Namespace) -> int:
    capture = cv2.VideoCapture()
    if args.video is not None:
        if not capture.open(args.video):
            print("Failure: could not open video file")
            return 1
    elif not capture.open(args.camera, cv2.CAP_ANY):
        print("Failure: could not open capture device")
        return 1

    if args.show:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(WINDOW_NAME, 1280, 1080)

    writer = None
    frames = 0
    try:
        while True:
            start = time.perf_counter()
            ok, frame = capture.read()
            if not ok:
                break

            r, detections = detector.detect(frame, DetectorFlag.INPUT_BGR)
            if r != Result.SUCCESS:
                return _failed("detect", r)

            elapsed = max(time.perf_counter() - start, 1e-6)
            visualize_detection(detections, frame, fps=int(1.0 / elapsed))
            _print_detections(detections)

            if args.out:
                if writer is None:
                    h, w = frame.shape[:2]
                    fps = capture.get(cv2.CAP_PROP_FPS) or 30.0
                    writer = cv2.VideoWriter(args.out, cv2.VideoWriter_fourcc(*"mp4v"), fps, (w, h))
                writer.write(frame)

            if args.show:
                cv2.imshow(WINDOW_NAME, frame)
                if cv2.waitKey(1) >= 0:
                    break

            frames += 1
            if args.max_frames and frames >= args.max_frames:
                break
    finally:
        capture.release()
        if writer is not None:
            writer.release()
        if args.show:
            cv2.destroyAllWindows()
    return 0
