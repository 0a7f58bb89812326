import tempfile
import unittest
from pathlib import Path

from yolov5_trt.classes import COCO_CLASS_NAMES, Classes
from yolov5_trt.common import Result
from yolov5_trt.log import LogLevel

from fakes import RecordingLogger


class TestClasses(unittest.TestCase):
    def test_defaults_to_coco(self) -> None:
        classes = Classes()
        self.assertTrue(classes.is_loaded())
        self.assertEqual(classes.size(), 80)
        self.assertEqual(len(COCO_CLASS_NAMES), 80)
        self.assertEqual(classes.get_name(0), (Result.SUCCESS, "person"))
        self.assertEqual(classes.get_name(79), (Result.SUCCESS, "toothbrush"))

    def test_out_of_range_lookup(self) -> None:
        logger = RecordingLogger()
        classes = Classes(logger)
        self.assertEqual(classes.get_name(80), (Result.FAILURE_INVALID_INPUT, ""))
        self.assertEqual(classes.get_name(-1), (Result.FAILURE_INVALID_INPUT, ""))
        self.assertEqual(len(logger.messages(LogLevel.ERROR)), 2)

    def test_load_replaces_names(self) -> None:
        logger = RecordingLogger()
        classes = Classes(logger)
        self.assertEqual(classes.load(["cat", "dog"]), Result.SUCCESS)
        self.assertEqual(classes.names(), ["cat", "dog"])
        self.assertEqual(classes.get_name(1), (Result.SUCCESS, "dog"))
        self.assertIn("[Classes] Loaded 2 classes", logger.messages(LogLevel.INFO))

    def test_empty_load_keeps_previous_names(self) -> None:
        classes = Classes()
        classes.load(["cat"])
        self.assertEqual(classes.load([]), Result.FAILURE_INVALID_INPUT)
        self.assertEqual(classes.names(), ["cat"])

    def test_load_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "custom.names"
            path.write_text("cat\n\ndog\nbird\n", encoding="utf-8")
            classes = Classes()
            self.assertEqual(classes.load_file(path), Result.SUCCESS)
        self.assertEqual(classes.names(), ["cat", "dog", "bird"])

    def test_load_file_failures(self) -> None:
        classes = Classes()
        self.assertEqual(classes.load_file("/nonexistent/coco.names"), Result.FAILURE_FILESYSTEM_ERROR)
        with tempfile.TemporaryDirectory() as tmp:
            sparse = Path(tmp) / "data.yaml"
            sparse.write_text("names:\n  0: cat\n  2: dog\n", encoding="utf-8")
            self.assertEqual(classes.load_file(sparse), Result.FAILURE_INVALID_INPUT)
            empty = Path(tmp) / "empty.names"
            empty.write_text("\n", encoding="utf-8")
            self.assertEqual(classes.load_file(empty), Result.FAILURE_INVALID_INPUT)
        self.assertEqual(classes.size(), 80)

    def test_copy_is_independent(self) -> None:
        classes = Classes()
        other = classes.copy()
        other.load(["cat"])
        self.assertEqual(classes.size(), 80)
        self.assertEqual(other.size(), 1)


if __name__ == "__main__":
    unittest.main()
