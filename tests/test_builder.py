import os
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from yolov5_trt.builder import Builder
from yolov5_trt.common import Precision, Result
from yolov5_trt.errors import YoloV5Error
from yolov5_trt.log import LogLevel

from fakes import RecordingLogger


def _mock_tensorrt() -> MagicMock:
    trt = MagicMock()
    builder = trt.Builder.return_value
    builder.platform_has_fast_fp16 = True
    builder.build_serialized_network.return_value = b"serialized-engine"
    trt.OnnxParser.return_value.parse.return_value = True
    return trt


class TestBuilder(unittest.TestCase):
    def setUp(self) -> None:
        self.trt = _mock_tensorrt()
        patch("yolov5_trt.builder._import_tensorrt", return_value=self.trt).start()
        patch("yolov5_trt.builder.create_tensorrt_logger", return_value=MagicMock()).start()
        self.addCleanup(patch.stopall)

        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = Path(self._tmp.name)
        self.model = self.dir / "yolov5s.onnx"
        self.model.write_bytes(b"onnx-model")
        self.engine = self.dir / "yolov5s.engine"

        self.logger = RecordingLogger()
        self.builder = Builder(workspace_size=1 << 20)
        self.builder.set_logger(self.logger)

    def test_build_before_init(self) -> None:
        self.assertEqual(self.builder.build_engine(self.model, self.engine), Result.FAILURE_NOT_INITIALIZED)
        self.assertFalse(self.engine.exists())

    def test_build_writes_engine(self) -> None:
        self.assertEqual(self.builder.init(), Result.SUCCESS)
        self.assertTrue(self.builder.is_initialized())
        self.assertEqual(self.builder.build_engine(self.model, self.engine, Precision.FP32), Result.SUCCESS)
        self.assertEqual(self.engine.read_bytes(), b"serialized-engine")

        parser = self.trt.OnnxParser.return_value
        parser.parse.assert_called_once_with(b"onnx-model")
        self.trt.Builder.return_value.create_builder_config.return_value.set_flag.assert_not_called()
        # no temporary files left behind
        self.assertEqual(sorted(p.name for p in self.dir.iterdir()), ["yolov5s.engine", "yolov5s.onnx"])

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_engine_file_mode_follows_umask(self) -> None:
        mask = os.umask(0o022)
        try:
            self.builder.init()
            self.assertEqual(self.builder.build_engine(self.model, self.engine), Result.SUCCESS)
        finally:
            os.umask(mask)
        self.assertEqual(stat.S_IMODE(self.engine.stat().st_mode), 0o644)

    def test_build_overwrites_existing_engine(self) -> None:
        self.engine.write_bytes(b"old")
        self.builder.init()
        self.assertEqual(self.builder.build_engine(self.model, self.engine), Result.SUCCESS)
        self.assertEqual(self.engine.read_bytes(), b"serialized-engine")

    def test_fp16(self) -> None:
        self.builder.init()
        self.assertEqual(self.builder.build_engine(self.model, self.engine, Precision.FP16), Result.SUCCESS)
        config = self.trt.Builder.return_value.create_builder_config.return_value
        config.set_flag.assert_called_once_with(self.trt.BuilderFlag.FP16)

    def test_fp16_unsupported(self) -> None:
        self.trt.Builder.return_value.platform_has_fast_fp16 = False
        self.builder.init()
        self.assertEqual(self.builder.build_engine(self.model, self.engine, Precision.FP16), Result.FAILURE_INVALID_INPUT)
        self.assertFalse(self.engine.exists())

    def test_invalid_precision(self) -> None:
        self.builder.init()
        self.assertEqual(self.builder.build_engine(self.model, self.engine, 5), Result.FAILURE_INVALID_INPUT)
        self.trt.Builder.assert_not_called()

    def test_parse_failure(self) -> None:
        parser = self.trt.OnnxParser.return_value
        parser.parse.return_value = False
        parser.num_errors = 2
        parser.get_error.side_effect = lambda i: f"node {i} unsupported"
        self.builder.init()

        self.assertEqual(self.builder.build_engine(self.model, self.engine), Result.FAILURE_MODEL_ERROR)
        errors = self.logger.messages(LogLevel.ERROR)
        self.assertTrue(any("node 1 unsupported" in m for m in errors))
        self.assertFalse(self.engine.exists())

    def test_missing_model(self) -> None:
        self.builder.init()
        r = self.builder.build_engine(self.dir / "missing.onnx", self.engine)
        self.assertEqual(r, Result.FAILURE_MODEL_ERROR)

    def test_build_returns_nothing(self) -> None:
        self.trt.Builder.return_value.build_serialized_network.return_value = None
        self.builder.init()
        self.assertEqual(self.builder.build_engine(self.model, self.engine), Result.FAILURE_BACKEND_ERROR)

    def test_unwritable_output(self) -> None:
        self.builder.init()
        r = self.builder.build_engine(self.model, self.dir / "missing-dir" / "out.engine")
        self.assertEqual(r, Result.FAILURE_FILESYSTEM_ERROR)

    def test_unexpected_exception(self) -> None:
        self.trt.Builder.return_value.build_serialized_network.side_effect = RuntimeError("driver crashed")
        self.builder.init()
        self.assertEqual(self.builder.build_engine(self.model, self.engine), Result.FAILURE_OTHER)
        self.assertTrue(any("driver crashed" in m for m in self.logger.messages(LogLevel.ERROR)))

    def test_init_without_tensorrt(self) -> None:
        with patch(
            "yolov5_trt.builder._import_tensorrt",
            side_effect=YoloV5Error(Result.FAILURE_BACKEND_ERROR, "tensorrt is required"),
        ):
            self.assertEqual(self.builder.init(), Result.FAILURE_BACKEND_ERROR)
        self.assertFalse(self.builder.is_initialized())

    def test_set_logger(self) -> None:
        self.builder.init()
        self.assertEqual(self.builder.set_logger(None), Result.FAILURE_INVALID_INPUT)
        other = RecordingLogger()
        self.assertEqual(self.builder.set_logger(other), Result.SUCCESS)
        self.assertIs(self.builder.logger(), other)
        self.assertIs(self.builder._trt_logger.sink, other)


if __name__ == "__main__":
    unittest.main()
