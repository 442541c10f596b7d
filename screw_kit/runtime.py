from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from .postprocess import YoloSegPostConfig, YoloSegPostprocessor
from .types import DetectionResult


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, so `models/best.onnx` resolves the same
    way from scripts, tests and notebooks.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Absolute paths are returned as-is; relative ones resolve against `root`
    or, when "auto"/None, against the project root.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


class InputArena:
    """
    Caller-owned float32 input buffer, reused across calls.

    `fill` overwrites the whole buffer, so nothing from a previous image leaks
    into the next one. Not safe to share between threads; give each worker its
    own arena.
    """

    def __init__(self, input_size: int = 640, *, channels_last: bool = True):
        self.input_size = int(input_size)
        self.channels_last = channels_last
        if channels_last:
            shape = (1, self.input_size, self.input_size, 3)
        else:
            shape = (1, 3, self.input_size, self.input_size)
        self.buffer = np.zeros(shape, dtype=np.float32)

    def fill(self, image_rgb: np.ndarray) -> np.ndarray:
        expected = (self.input_size, self.input_size, 3)
        if image_rgb.shape != expected:
            raise ValueError(f"Expected resized image shape {expected}, got {image_rgb.shape}")
        src = image_rgb if self.channels_last else np.transpose(image_rgb, (2, 0, 1))
        np.divide(src, 255.0, out=self.buffer[0], dtype=np.float32)
        return self.buffer


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]


def preprocess(image_bgr: np.ndarray, arena: InputArena) -> PreprocessResult:
    """
    Stretch-resize a BGR image to the model input, convert to RGB and scale to 0..1.

    No letterboxing: the decoder maps boxes back with independent x/y scales.
    """

    try:
        import cv2  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError("OpenCV is required for preprocess(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    orig_h, orig_w = image_bgr.shape[:2]
    size = arena.input_size
    if (orig_w, orig_h) != (size, size):
        resized = cv2.resize(image_bgr, (size, size), interpolation=cv2.INTER_LINEAR)
    else:
        resized = image_bgr
    rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

    return PreprocessResult(blob=arena.fill(rgb), orig_size=(orig_w, orig_h))


class ScrewDetector:
    """
    Plug-and-play pipeline: preprocess -> inference -> decode + NMS.

    `infer_fn` receives the input blob and must return the raw (1, 37, 8400)
    or (37, 8400) output. Images are OpenCV-style BGR arrays; results are in
    original image coordinates.

    The NHWC default (`channels_last=True`) is for callers that bring their own
    `infer_fn`, e.g. a TFLite interpreter running `best_float32.tflite`, which
    takes (1, 640, 640, 3). `load_detector` only ships the ONNX backend and
    builds NCHW detectors unless told otherwise.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        post_cfg: YoloSegPostConfig = YoloSegPostConfig(),
        arena: Optional[InputArena] = None,
        channels_last: bool = True,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.post = YoloSegPostprocessor(post_cfg)
        if arena is None:
            arena = InputArena(post_cfg.input_size, channels_last=channels_last)
        elif arena.input_size != post_cfg.input_size:
            raise ValueError(f"Arena size {arena.input_size} does not match input_size {post_cfg.input_size}")
        self.arena = arena

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        return preprocess(image_bgr, self.arena)

    def detect(self, image_bgr: np.ndarray) -> DetectionResult:
        prep = self.preprocess(image_bgr)
        width, height = prep.orig_size
        logger.debug("Detecting screws in %dx%d image", width, height)
        preds = self._infer_fn(prep.blob)
        return self.post.process(preds, width, height)

    def __call__(self, image_bgr: np.ndarray) -> DetectionResult:
        return self.detect(image_bgr)


def load_detector(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    post_cfg: YoloSegPostConfig = YoloSegPostConfig(),
    channels_last: Optional[bool] = None,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
) -> ScrewDetector:
    """
    Create a detector for a model on disk.

        detector = load_detector("models/best.onnx")  # resolves from project root by default

    Args:
        model_path: path to the exported model; relative paths resolve against project root by default
        backend: "onnxruntime", or None to infer from the extension
        channels_last: input layout; None picks NCHW for ONNX exports
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                input_name=onnx_input_name,
                output_name=onnx_output_name,
            ),
        )
        return ScrewDetector(
            ort_backend.infer,
            backend=ort_backend,
            backend_name="onnxruntime",
            post_cfg=post_cfg,
            channels_last=bool(channels_last) if channels_last is not None else False,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
