import unittest

from yolov5_trt.common import (
    DetectorFlag,
    Precision,
    Result,
    precision_from_string,
    precision_to_string,
    result_to_string,
)
from yolov5_trt.errors import YoloV5Error, result_boundary
from yolov5_trt.log import LogLevel

from fakes import RecordingLogger


class TestResultCodes(unittest.TestCase):
    def test_codes_are_stable(self) -> None:
        self.assertEqual(int(Result.SUCCESS), 0)
        self.assertEqual(int(Result.FAILURE_INVALID_INPUT), -100)
        self.assertEqual(int(Result.FAILURE_NOT_LOADED), -80)
        self.assertEqual(int(Result.FAILURE_OTHER), -10)
        for r in Result:
            if r != Result.SUCCESS:
                self.assertLess(int(r), 0)

    def test_result_to_string(self) -> None:
        self.assertEqual(result_to_string(Result.SUCCESS), "success")
        self.assertEqual(result_to_string(Result.FAILURE_FILESYSTEM_ERROR), "filesystem error")
        self.assertEqual(result_to_string(-100), "invalid input")
        self.assertEqual(result_to_string(12345), "")
        for r in Result:
            self.assertTrue(result_to_string(r))

    def test_precision_strings(self) -> None:
        self.assertEqual(precision_to_string(Precision.FP32), "fp32")
        self.assertEqual(precision_to_string(Precision.FP16), "fp16")
        self.assertEqual(precision_to_string(7), "")
        self.assertEqual(precision_from_string(" FP16 "), Precision.FP16)
        with self.assertRaises(ValueError):
            precision_from_string("int8")

    def test_flags_combine(self) -> None:
        flags = DetectorFlag.INPUT_RGB | DetectorFlag.PREPROCESSOR_CUDA
        self.assertEqual(int(flags), 6)
        self.assertTrue(flags & DetectorFlag.PREPROCESSOR_CUDA)
        self.assertFalse(flags & DetectorFlag.INPUT_BGR)


class _Component:
    def __init__(self, logger=None):
        self._logger = logger

    @result_boundary("Component", "run")
    def run(self, exc=None):
        if exc is not None:
            raise exc
        return Result.SUCCESS

    @result_boundary("Component", "fetch", empty=list)
    def fetch(self, exc=None):
        if exc is not None:
            raise exc
        return Result.SUCCESS, [1, 2]


class TestResultBoundary(unittest.TestCase):
    def test_success_passes_through(self) -> None:
        c = _Component()
        self.assertEqual(c.run(), Result.SUCCESS)
        self.assertEqual(c.fetch(), (Result.SUCCESS, [1, 2]))

    def test_exceptions_map_to_results(self) -> None:
        c = _Component()
        cases = [
            (YoloV5Error(Result.FAILURE_NOT_LOADED, "nope"), Result.FAILURE_NOT_LOADED),
            (MemoryError("oom"), Result.FAILURE_ALLOC),
            (RuntimeError("boom"), Result.FAILURE_OTHER),
        ]
        for exc, expected in cases:
            with self.subTest(exc=type(exc).__name__):
                self.assertEqual(c.run(exc), expected)
                self.assertEqual(c.fetch(exc), (expected, []))

    def test_failure_is_logged(self) -> None:
        logger = RecordingLogger()
        _Component(logger).run(YoloV5Error(Result.FAILURE_INVALID_INPUT, "bad value"))
        self.assertEqual(logger.messages(LogLevel.ERROR), ["[Component] run() failure: bad value"])


if __name__ == "__main__":
    unittest.main()
