from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class NMSConfig:
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    # None keeps every box that survives suppression.
    max_detections: Optional[int] = None


def iou(box1: Sequence[float], box2: Sequence[float]) -> float:
    """
    IoU of two xyxy boxes.

    Boxes that only touch at an edge (or corner) do not overlap and give 0.
    A zero union (two coincident zero-area boxes) also gives 0.
    """

    x1 = max(box1[0], box2[0])
    y1 = max(box1[1], box2[1])
    x2 = min(box1[2], box2[2])
    y2 = min(box1[3], box2[3])

    if x2 <= x1 or y2 <= y1:
        return 0.0

    inter = (x2 - x1) * (y2 - y1)
    area1 = (box1[2] - box1[0]) * (box1[3] - box1[1])
    area2 = (box2[2] - box2[0]) * (box2[3] - box2[1])
    union = area1 + area2 - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def iou_one_to_many(box: np.ndarray, others: np.ndarray, dtype=np.float64) -> np.ndarray:
    """
    Vectorised `iou` of one xyxy box against an (N, 4) array, computed in `dtype`.
    """

    others = np.asarray(others, dtype=dtype).reshape(-1, 4)
    box = np.asarray(box, dtype=dtype)

    xx1 = np.maximum(box[0], others[:, 0])
    yy1 = np.maximum(box[1], others[:, 1])
    xx2 = np.minimum(box[2], others[:, 2])
    yy2 = np.minimum(box[3], others[:, 3])

    overlaps = (xx2 > xx1) & (yy2 > yy1)
    inter = np.where(overlaps, (xx2 - xx1) * (yy2 - yy1), 0.0)

    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (others[:, 2] - others[:, 0]) * (others[:, 3] - others[:, 1])
    union = area + areas - inter

    out = np.zeros(others.shape[0], dtype=dtype)
    valid = overlaps & (union > 0)
    out[valid] = inter[valid] / union[valid]
    return out


def as_float_array(values: np.ndarray) -> np.ndarray:
    if np.issubdtype(values.dtype, np.floating):
        return values
    return values.astype(np.float64)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig = NMSConfig()) -> np.ndarray:
    """
    Greedy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, best score first.

    Scores below `cfg.conf_threshold` (and NaN scores) are dropped before
    sorting. Equal scores keep ascending index order. A box is suppressed
    only when its IoU with a kept box is strictly greater than
    `cfg.iou_threshold`.

    Thresholds are compared in the precision of the inputs: float32 scores
    against float32(conf_threshold), IoU of float32 boxes against
    float32(iou_threshold).
    """

    boxes = as_float_array(np.asarray(boxes)).reshape(-1, 4)
    scores = as_float_array(np.asarray(scores)).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes and scores disagree: {boxes.shape[0]} vs {scores.shape[0]}")

    candidates = np.flatnonzero(np.isfinite(scores) & (scores >= scores.dtype.type(cfg.conf_threshold)))
    if candidates.size == 0:
        return np.empty((0,), dtype=np.int64)

    # Stable sort on the negated score: ties stay in ascending index order.
    order = candidates[np.argsort(-scores[candidates], kind="stable")]
    iou_threshold = boxes.dtype.type(cfg.iou_threshold)
    keep = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(i)

        overlap = iou_one_to_many(boxes[i], boxes[order[1:]], dtype=boxes.dtype)
        order = order[1:][overlap <= iou_threshold]

    return np.array(keep, dtype=np.int64)
