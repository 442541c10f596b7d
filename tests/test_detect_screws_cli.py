import contextlib
import importlib.util
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import cv2
import numpy as np

from screw_kit.types import Detection, DetectionResult, Rect


SCRIPT = Path(__file__).resolve().parents[1] / "Scripts" / "detect_screws.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("detect_screws", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class _FakeDetector:
    def __init__(self):
        self.images = []

    def __call__(self, image_bgr):
        self.images.append(image_bgr)
        h, w = image_bgr.shape[:2]
        det = Detection(box=Rect(10.0, 20.0, 60.0, 70.0), confidence=0.8, mask_coefficients=(0.1,) * 32)
        return DetectionResult(detections=(det,), image_width=w, image_height=h)


class TestDetectScrewsCli(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.tmp = Path(tmpdir.name)
        self.image_path = self.tmp / "part.png"
        cv2.imwrite(str(self.image_path), np.full((120, 160, 3), 90, dtype=np.uint8))
        self.module = _load_script()
        self.detector = _FakeDetector()
        self.load_calls = []

        def fake_load_detector(model, **kwargs):
            self.load_calls.append((model, kwargs))
            return self.detector

        patcher = mock.patch.object(self.module, "load_detector", side_effect=fake_load_detector)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _run(self, *argv: str) -> str:
        out = io.StringIO()
        with mock.patch("sys.argv", ["detect_screws.py", *argv]), contextlib.redirect_stdout(out):
            self.assertEqual(self.module.main(), 0)
        return out.getvalue()

    def test_flags_override_config_file(self) -> None:
        config = self.tmp / "detector.json"
        config.write_text(
            json.dumps(
                {
                    "schema_version": 1,
                    "model": "models/from_config.onnx",
                    "conf_threshold": 0.3,
                    "iou_threshold": 0.5,
                    "channels_last": True,
                }
            ),
            encoding="utf-8",
        )

        self._run("--image", str(self.image_path), "--config", str(config), "--conf", "0.6")

        model, kwargs = self.load_calls[0]
        self.assertEqual(model, "models/from_config.onnx")
        self.assertEqual(kwargs["post_cfg"].conf_threshold, 0.6)
        self.assertEqual(kwargs["post_cfg"].iou_threshold, 0.5)
        self.assertTrue(kwargs["channels_last"])

        self._run("--image", str(self.image_path), "--config", str(config), "--iou", "0.3", "--model", "cli.onnx")
        model, kwargs = self.load_calls[1]
        self.assertEqual(model, "cli.onnx")
        self.assertEqual(kwargs["post_cfg"].conf_threshold, 0.3)
        self.assertEqual(kwargs["post_cfg"].iou_threshold, 0.3)

    def test_defaults_without_config(self) -> None:
        self._run("--image", str(self.image_path))
        model, kwargs = self.load_calls[0]
        self.assertEqual(model, "models/best.onnx")
        self.assertEqual(kwargs["post_cfg"].conf_threshold, 0.25)
        self.assertEqual(kwargs["post_cfg"].iou_threshold, 0.45)
        self.assertIsNone(kwargs["channels_last"])
        self.assertIsNone(kwargs["onnx_providers"])

    def test_prints_detections_and_writes_outputs(self) -> None:
        out_image = self.tmp / "annotated.png"
        out_json = self.tmp / "result.json"
        stdout = self._run(
            "--image",
            str(self.image_path),
            "--out",
            str(out_image),
            "--json",
            str(out_json),
            "--onnx-providers",
            "CPUExecutionProvider, ",
        )

        self.assertIn("Screw 1: 0.800", stdout)
        self.assertIn("Detected screws: 1", stdout)
        self.assertEqual(self.load_calls[0][1]["onnx_providers"], ["CPUExecutionProvider"])
        self.assertEqual(self.detector.images[0].shape, (120, 160, 3))

        payload = json.loads(out_json.read_text(encoding="utf-8"))
        self.assertEqual((payload["image_width"], payload["image_height"]), (160, 120))
        self.assertEqual(len(payload["detections"]), 1)

        annotated = cv2.imread(str(out_image))
        self.assertIsNotNone(annotated)
        self.assertEqual(annotated.shape, (120, 160, 3))

    def test_missing_image(self) -> None:
        with self.assertRaises(FileNotFoundError):
            self._run("--image", str(self.tmp / "nope.png"))


if __name__ == "__main__":
    unittest.main()
