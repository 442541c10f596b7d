from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .errors import ImageSizeError
from .nms import NMSConfig, as_float_array, nms
from .tensor import OutputTensor
from .types import Detection, DetectionResult, Rect


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YoloSegPostConfig:
    """
    Post-processing parameters for a single-class YOLO-seg export.

    The raw output is (box_channel_count + 1 + mask_coefficient_count, anchor_count),
    i.e. 37 x 8400 for a 640x640 YOLOv8-seg model.
    """

    input_size: int = 640
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    mask_coefficient_count: int = 32
    box_channel_count: int = 4
    anchor_count: int = 8400
    # None keeps every box that survives NMS.
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if self.input_size <= 0:
            raise ValueError("input_size must be > 0")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be in [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.mask_coefficient_count < 0:
            raise ValueError("mask_coefficient_count must be >= 0")
        if self.box_channel_count != 4:
            raise ValueError("box_channel_count must be 4 (cx, cy, w, h)")
        if self.anchor_count <= 0:
            raise ValueError("anchor_count must be > 0")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 when set")

    @property
    def total_channels(self) -> int:
        return self.box_channel_count + 1 + self.mask_coefficient_count


@dataclass(frozen=True)
class Candidates:
    """
    Boxes that passed the confidence filter, in ascending anchor order.

    boxes: (N, 4) xyxy in original image pixels, already clamped.
    """

    boxes: np.ndarray
    scores: np.ndarray
    anchor_indices: np.ndarray

    def __len__(self) -> int:
        return int(self.scores.shape[0])


def _check_image_size(src_width: int, src_height: int) -> None:
    for name, value in (("src_width", src_width), ("src_height", src_height)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ImageSizeError(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise ImageSizeError(f"{name} must be > 0, got {value}")


def as_output_tensor(preds: Union[np.ndarray, OutputTensor], cfg: YoloSegPostConfig) -> OutputTensor:
    if isinstance(preds, OutputTensor):
        if preds.shape == (cfg.total_channels, cfg.anchor_count):
            return preds
        preds = preds.data
    return OutputTensor(
        preds,
        channels=cfg.total_channels,
        anchors=cfg.anchor_count,
        box_channels=cfg.box_channel_count,
    )


def decode_candidates(
    preds: Union[np.ndarray, OutputTensor],
    src_width: int,
    src_height: int,
    cfg: YoloSegPostConfig = YoloSegPostConfig(),
) -> Candidates:
    """
    Filter anchors by confidence and map their boxes to original image pixels.

    Box rows hold cx, cy, w, h in input-resolution pixels. Corners are computed
    in that space, scaled by (src / input_size) per axis, then clamped to
    [0, src_width] x [0, src_height]. Anchors with a non-finite confidence or
    box field are dropped together with those under the threshold.
    """

    _check_image_size(src_width, src_height)
    tensor = as_output_tensor(preds, cfg)

    conf = as_float_array(tensor.confidences())
    raw = tensor.boxes().astype(np.float64)  # (4, A)

    finite = np.isfinite(conf) & np.isfinite(raw).all(axis=0)
    # NaN compares False here as well, but `finite` makes the exclusion explicit.
    # Threshold in the tensor's own precision: float32(0.7) must pass conf_threshold=0.7.
    keep = np.flatnonzero(finite & (conf >= conf.dtype.type(cfg.conf_threshold)))
    if keep.size == 0:
        return Candidates(
            boxes=np.empty((0, 4), dtype=np.float64),
            scores=np.empty((0,), dtype=conf.dtype),
            anchor_indices=np.empty((0,), dtype=np.int64),
        )

    cx, cy, w, h = raw[:, keep]
    scale_x = src_width / float(cfg.input_size)
    scale_y = src_height / float(cfg.input_size)

    x1 = np.clip((cx - w / 2) * scale_x, 0.0, float(src_width))
    y1 = np.clip((cy - h / 2) * scale_y, 0.0, float(src_height))
    x2 = np.clip((cx + w / 2) * scale_x, 0.0, float(src_width))
    y2 = np.clip((cy + h / 2) * scale_y, 0.0, float(src_height))

    return Candidates(
        boxes=np.stack([x1, y1, x2, y2], axis=1),
        scores=conf[keep],
        anchor_indices=keep.astype(np.int64),
    )


class YoloSegPostprocessor:
    """
    Decode -> NMS -> result assembly for a single-class YOLO-seg output.

    Input is the raw (37, 8400) output (optionally with a batch axis of 1)
    as a NumPy array; torch outputs should be detached and converted first.
    """

    def __init__(self, cfg: YoloSegPostConfig = YoloSegPostConfig()):
        self.cfg = cfg

    def process(
        self,
        preds: Union[np.ndarray, OutputTensor],
        src_width: int,
        src_height: int,
    ) -> DetectionResult:
        """
        Convert a raw model output into detections in original image coordinates.

        Args:
            preds: model output for a single image
            src_width, src_height: size of the image before resizing to the model input
        """

        tensor = as_output_tensor(preds, self.cfg)
        candidates = decode_candidates(tensor, src_width, src_height, self.cfg)
        logger.debug("Raw detections before NMS: %d", len(candidates))

        keep_idx = nms(candidates.boxes, candidates.scores, self._nms_config())

        detections = []
        for idx in keep_idx:
            x1, y1, x2, y2 = candidates.boxes[idx]
            detections.append(
                Detection(
                    box=Rect(float(x1), float(y1), float(x2), float(y2)),
                    confidence=float(candidates.scores[idx]),
                    mask_coefficients=tensor.mask_coefficients(int(candidates.anchor_indices[idx])),
                )
            )

        logger.debug("Final detections after NMS: %d", len(detections))
        return DetectionResult(detections=tuple(detections), image_width=int(src_width), image_height=int(src_height))

    def _nms_config(self) -> NMSConfig:
        return NMSConfig(
            conf_threshold=self.cfg.conf_threshold,
            iou_threshold=self.cfg.iou_threshold,
            max_detections=self.cfg.max_detections,
        )
