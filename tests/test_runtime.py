import importlib.util
import tempfile
import unittest
from pathlib import Path

import numpy as np

from screw_kit.postprocess import YoloSegPostConfig
from screw_kit.runtime import InputArena, ScrewDetector, find_project_root, load_detector, resolve_path


def _single_box_output() -> np.ndarray:
    p = np.zeros((1, 37, 8400), dtype=np.float32)
    p[0, 0:5, 42] = [320, 320, 100, 100, 0.9]
    p[0, 5:, 42] = np.arange(32, dtype=np.float32)
    return p


class _RecordingInfer:
    def __init__(self, output: np.ndarray):
        self.output = output
        self.blobs = []

    def __call__(self, blob: np.ndarray) -> np.ndarray:
        self.blobs.append(blob.copy())
        return self.output


class TestScrewDetector(unittest.TestCase):
    def test_end_to_end_scales_to_original_image(self) -> None:
        infer = _RecordingInfer(_single_box_output())
        detector = ScrewDetector(infer)
        image = np.zeros((720, 1280, 3), dtype=np.uint8)

        result = detector(image)

        self.assertEqual((result.image_width, result.image_height), (1280, 720))
        self.assertEqual(len(result), 1)
        det = result.detections[0]
        self.assertTrue(np.allclose(det.as_xyxy(), (540.0, 303.75, 740.0, 416.25)))
        self.assertEqual(det.mask_coefficients, tuple(float(i) for i in range(32)))

    def test_blob_is_rgb_normalised_nhwc(self) -> None:
        infer = _RecordingInfer(_single_box_output())
        detector = ScrewDetector(infer)
        image = np.zeros((300, 400, 3), dtype=np.uint8)
        image[:, :, 0] = 255  # blue in BGR

        detector(image)

        blob = infer.blobs[0]
        self.assertEqual(blob.shape, (1, 640, 640, 3))
        self.assertEqual(blob.dtype, np.float32)
        self.assertTrue(np.allclose(blob[0, :, :, 2], 1.0))
        self.assertTrue(np.allclose(blob[0, :, :, :2], 0.0))

    def test_channels_first_layout(self) -> None:
        infer = _RecordingInfer(_single_box_output())
        detector = ScrewDetector(infer, channels_last=False)
        detector(np.full((640, 640, 3), 51, dtype=np.uint8))
        blob = infer.blobs[0]
        self.assertEqual(blob.shape, (1, 3, 640, 640))
        self.assertTrue(np.allclose(blob, 0.2))

    def test_arena_is_fully_overwritten_between_calls(self) -> None:
        arena = InputArena(640)
        infer = _RecordingInfer(_single_box_output())
        detector = ScrewDetector(infer, arena=arena)

        detector(np.full((480, 640, 3), 255, dtype=np.uint8))
        detector(np.zeros((480, 640, 3), dtype=np.uint8))

        self.assertTrue(np.allclose(infer.blobs[0], 1.0))
        self.assertTrue(np.allclose(infer.blobs[1], 0.0))
        self.assertTrue(np.allclose(arena.buffer, 0.0))

    def test_arena_size_must_match_config(self) -> None:
        with self.assertRaises(ValueError):
            ScrewDetector(lambda blob: blob, arena=InputArena(320), post_cfg=YoloSegPostConfig())

    def test_rejects_non_images(self) -> None:
        detector = ScrewDetector(_RecordingInfer(_single_box_output()))
        with self.assertRaises(TypeError):
            detector(None)
        with self.assertRaises(ValueError):
            detector(np.zeros((10, 10), dtype=np.uint8))

    def test_deterministic(self) -> None:
        detector = ScrewDetector(_RecordingInfer(_single_box_output()))
        image = np.zeros((720, 1280, 3), dtype=np.uint8)
        self.assertEqual(detector(image), detector(image))


class TestPaths(unittest.TestCase):
    def test_find_project_root_uses_markers(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name).resolve()
        (root / "pyproject.toml").write_text("", encoding="utf-8")
        nested = root / "a" / "b"
        nested.mkdir(parents=True)
        self.assertEqual(find_project_root(nested), root)

    def test_resolve_path(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name).resolve()
        self.assertEqual(resolve_path("models/best.onnx", root=root), root / "models" / "best.onnx")
        absolute = root / "x.onnx"
        self.assertEqual(resolve_path(absolute), absolute)

    def test_load_detector_unknown_extension(self) -> None:
        with self.assertRaises(ValueError):
            load_detector("models/best.tflite")

    @unittest.skipUnless(importlib.util.find_spec("onnxruntime"), "onnxruntime not installed")
    def test_load_detector_missing_model(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        with self.assertRaises(FileNotFoundError):
            load_detector("missing.onnx", root=tmpdir.name)


if __name__ == "__main__":
    unittest.main()
