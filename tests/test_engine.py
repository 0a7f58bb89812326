import unittest

import torch

from yolov5_trt.common import Result
from yolov5_trt.engine import DeviceMemory, EngineBinding, create_resources, validate_bindings
from yolov5_trt.errors import YoloV5Error

from fakes import FakeEngine


class TestEngineBinding(unittest.TestCase):
    def test_sizes(self) -> None:
        b = EngineBinding("images", 0, (2, 3, 64, 64), True, torch.float32)
        self.assertEqual(b.volume, 2 * 3 * 64 * 64)
        self.assertEqual(b.nbytes, b.volume * 4)
        self.assertFalse(b.is_dynamic)
        self.assertEqual(b.describe(), "input binding 0 'images': 2x3x64x64 (24576 elements, 98304 bytes)")

    def test_dynamic(self) -> None:
        self.assertTrue(EngineBinding("images", 0, (-1, 3, 64, 64), True, torch.float32).is_dynamic)


class TestValidateBindings(unittest.TestCase):
    def test_accepts_yolov5_layout(self) -> None:
        inp, out = validate_bindings(FakeEngine(batch=2).bindings())
        self.assertEqual(inp.name, "images")
        self.assertEqual(out.name, "output0")

    def test_batch_mismatch(self) -> None:
        bindings = [
            EngineBinding("images", 0, (2, 3, 64, 64), True, torch.float32),
            EngineBinding("output0", 1, (1, 8, 7), False, torch.float32),
        ]
        with self.assertRaises(YoloV5Error) as cm:
            validate_bindings(bindings)
        self.assertEqual(cm.exception.result, Result.FAILURE_MODEL_ERROR)

    def test_missing_output(self) -> None:
        with self.assertRaises(YoloV5Error):
            validate_bindings([EngineBinding("images", 0, (1, 3, 64, 64), True, torch.float32)])


class TestDeviceMemory(unittest.TestCase):
    def test_allocate_and_free(self) -> None:
        memory = DeviceMemory()
        memory.allocate(FakeEngine().bindings(), "cpu")
        self.assertTrue(memory.is_allocated)
        self.assertEqual(tuple(memory["images"].shape), (1, 3, 64, 64))
        self.assertEqual(set(memory.buffers()), {"images", "output0"})

        with self.assertRaises(YoloV5Error):
            memory.allocate(FakeEngine().bindings(), "cpu")

        memory.free()
        self.assertFalse(memory.is_allocated)


class TestEngineResources(unittest.TestCase):
    def test_create_and_release(self) -> None:
        engine = FakeEngine(batch=3, size=(96, 64), num_classes=4)
        resources = create_resources(engine, "cpu")
        self.assertEqual(resources.max_batch_size, 3)
        self.assertEqual(resources.input_size, (96, 64))
        self.assertEqual(resources.num_classes, 4)
        self.assertEqual(resources.host_output.shape, (3, 8, 9))
        self.assertEqual(len(engine.contexts), 1)

        resources.release()
        resources.release()
        self.assertEqual(engine.events, ["context", "engine"])
        self.assertFalse(resources.device_memory.is_allocated)

    def test_context_failure_frees_memory(self) -> None:
        engine = FakeEngine()
        engine.create_context = lambda: None
        with self.assertRaises(YoloV5Error) as cm:
            create_resources(engine, "cpu")
        self.assertEqual(cm.exception.result, Result.FAILURE_BACKEND_ERROR)


if __name__ == "__main__":
    unittest.main()
