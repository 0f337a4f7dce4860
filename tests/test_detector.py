import unittest
from typing import List, Tuple

import numpy as np

from ultraface_kit.errors import InvalidPixelFormat, NotInitialized, ShapeMismatch
from ultraface_kit.runtime import Detector, backend_factory_for


def _nearest_resize(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    w, h = size
    ys = np.arange(h) * image.shape[0] // h
    xs = np.arange(w) * image.shape[1] // w
    return image[ys][:, xs]


class FakeBackend:
    """Returns canned (boxes, scores) and records the packed inputs."""

    def __init__(self, boxes: np.ndarray, scores: np.ndarray, input_shape=(1, 3, 4, 8)):
        self.input_shape = input_shape
        self.boxes_shape = boxes.shape
        self.scores_shape = scores.shape
        self.boxes = boxes
        self.scores = scores
        self.inputs: List[np.ndarray] = []
        self.close_calls = 0

    def run(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        self.inputs.append(blob.copy())
        return self.boxes, self.scores

    def close(self) -> None:
        self.close_calls += 1


def _head_outputs() -> Tuple[np.ndarray, np.ndarray]:
    boxes = np.array(
        [
            [
                [0.1, 0.1, 0.5, 0.5],
                [0.1, 0.1, 0.5, 0.5],
                [0.6, 0.6, 0.9, 0.9],
                [0.0, 0.0, 1.0, 1.0],
            ]
        ],
        dtype=np.float32,
    )
    scores = np.array(
        [
            [
                [0.2, 0.8],
                [0.1, 0.9],
                [0.2, 0.8],
                [0.9, 0.1],
            ]
        ],
        dtype=np.float32,
    )
    return boxes, scores


class TestDetector(unittest.TestCase):
    def _make(self, backend: FakeBackend, **kwargs) -> Detector:
        return Detector(
            "model.onnx",
            backend_factory=lambda path: backend,
            resize_fn=_nearest_resize,
            **kwargs,
        )

    def test_detect_runs_full_pipeline(self) -> None:
        backend = FakeBackend(*_head_outputs())
        det = self._make(backend, confidence_threshold=0.5, iou_threshold=0.5)
        det.initialize()
        self.assertEqual(det.input_size, (8, 4))

        image = np.zeros((100, 200, 4), dtype=np.uint8)
        image[:, :] = [0, 0, 255, 255]
        out = det.detect(image)

        self.assertEqual(len(out), 2)
        self.assertAlmostEqual(out[0].score, 0.9, places=6)
        self.assertAlmostEqual(out[0].x1, 20.0, places=4)
        self.assertAlmostEqual(out[0].y2, 50.0, places=4)
        self.assertAlmostEqual(out[1].score, 0.8, places=6)
        self.assertAlmostEqual(out[1].x1, 120.0, places=4)

        packed = backend.inputs[0]
        self.assertEqual(packed.shape, (1, 3, 4, 8))
        self.assertTrue(np.all(packed[0, 0] == 1.0))
        self.assertTrue(np.all(packed[0, 1:] == 0.0))

    def test_detect_is_deterministic(self) -> None:
        boxes = np.tile(np.array([0.1, 0.1, 0.2, 0.2], dtype=np.float32), (1, 6, 1))
        boxes[0, :, 0] += np.arange(6, dtype=np.float32) * 0.15
        boxes[0, :, 2] += np.arange(6, dtype=np.float32) * 0.15
        scores = np.tile(np.array([0.1, 0.8], dtype=np.float32), (1, 6, 1))
        backend = FakeBackend(boxes, scores)
        image = np.full((50, 50, 3), 128, dtype=np.uint8)
        with self._make(backend, confidence_threshold=0.5) as det:
            first = det.detect(image)
            for _ in range(5):
                self.assertEqual(det.detect(image), first)
        self.assertEqual([d.x1 for d in first], sorted(d.x1 for d in first))

    def test_input_buffer_is_reused(self) -> None:
        backend = FakeBackend(*_head_outputs())
        seen = []
        backend.run = lambda blob: (seen.append(blob), (backend.boxes, backend.scores))[1]
        det = self._make(backend)
        det.initialize()
        image = np.zeros((10, 10, 4), dtype=np.uint8)
        det.detect(image)
        det.detect(image)
        self.assertIs(seen[0], seen[1])

    def test_detect_before_initialize(self) -> None:
        det = self._make(FakeBackend(*_head_outputs()))
        with self.assertRaises(NotInitialized):
            det.detect(np.zeros((4, 8, 4), dtype=np.uint8))
        with self.assertRaises(NotInitialized):
            _ = det.input_size

    def test_dispose_releases_once(self) -> None:
        backend = FakeBackend(*_head_outputs())
        det = self._make(backend)
        det.initialize()
        det.dispose()
        det.dispose()
        self.assertEqual(backend.close_calls, 1)
        self.assertFalse(det.is_initialized)
        with self.assertRaises(NotInitialized):
            det.detect(np.zeros((4, 8, 4), dtype=np.uint8))
        with self.assertRaises(RuntimeError):
            det.initialize()

    def test_double_initialize(self) -> None:
        det = self._make(FakeBackend(*_head_outputs()))
        det.initialize()
        with self.assertRaises(RuntimeError):
            det.initialize()

    def test_context_manager_releases_on_error(self) -> None:
        backend = FakeBackend(*_head_outputs())
        with self.assertRaises(InvalidPixelFormat):
            with self._make(backend) as det:
                det.detect(np.zeros((4, 8, 2), dtype=np.uint8))
        self.assertEqual(backend.close_calls, 1)

    def test_bad_input_shape_closes_backend(self) -> None:
        backend = FakeBackend(*_head_outputs(), input_shape=(1, 1, 4, 8))
        det = self._make(backend)
        with self.assertRaises(ShapeMismatch):
            det.initialize()
        self.assertEqual(backend.close_calls, 1)
        self.assertFalse(det.is_initialized)

    def test_backend_errors_propagate_unchanged(self) -> None:
        backend = FakeBackend(*_head_outputs())

        def boom(blob: np.ndarray):
            raise KeyError("scores")

        backend.run = boom
        det = self._make(backend)
        det.initialize()
        with self.assertRaises(KeyError):
            det.detect(np.zeros((4, 8, 4), dtype=np.uint8))

    def test_inconsistent_outputs(self) -> None:
        boxes, scores = _head_outputs()
        det = self._make(FakeBackend(boxes[:, :3], scores))
        det.initialize()
        with self.assertRaises(ShapeMismatch):
            det.detect(np.zeros((4, 8, 4), dtype=np.uint8))

    def test_grayscale_image_is_invalid_pixel_format(self) -> None:
        det = self._make(FakeBackend(*_head_outputs()))
        det.initialize()
        with self.assertRaises(InvalidPixelFormat):
            det.detect(np.zeros((4, 8), dtype=np.uint8))
        with self.assertRaises(TypeError):
            det.detect([[0, 0], [0, 0]])

    def test_thresholds_are_validated(self) -> None:
        with self.assertRaises(ValueError):
            Detector("model.onnx", confidence_threshold=float("nan"))
        det = Detector("model.onnx")
        self.assertEqual(det.confidence_threshold, 0.75)
        self.assertEqual(det.iou_threshold, 0.5)

    def test_threshold_above_one_for_uncalibrated_scores(self) -> None:
        boxes = np.array([[[0.0, 0.0, 0.5, 0.5], [0.5, 0.5, 1.0, 1.0]]], dtype=np.float32)
        scores = np.array([[[0.0, 1.5], [0.0, 1.1]]], dtype=np.float32)
        det = self._make(FakeBackend(boxes, scores), confidence_threshold=1.2)
        with det:
            out = det.detect(np.zeros((4, 8, 4), dtype=np.uint8))
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].score, 1.5)


class TestBackendSelection(unittest.TestCase):
    def test_unknown_extension(self) -> None:
        with self.assertRaises(ValueError):
            backend_factory_for("model.bin")

    def test_unknown_backend_name(self) -> None:
        with self.assertRaises(ValueError):
            backend_factory_for("model.onnx", backend="tflite")

    def test_known_backends(self) -> None:
        self.assertTrue(callable(backend_factory_for("model.onnx")))
        self.assertTrue(callable(backend_factory_for("model.pt")))
        self.assertTrue(callable(backend_factory_for("model.bin", backend="ONNXRuntime")))


if __name__ == "__main__":
    unittest.main()
