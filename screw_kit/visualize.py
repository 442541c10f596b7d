from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from .types import Detection


BOX_COLOR: Tuple[int, int, int] = (0, 0, 255)  # BGR red
TEXT_COLOR: Tuple[int, int, int] = (255, 255, 255)


def format_label(det: Detection, label: str = "Screw") -> str:
    return f"{label}: {int(det.confidence * 100)}%"


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    label: str = "Screw",
    box_thickness: int = 3,
    font_scale: float = 0.6,
    font_thickness: int = 1,
    label_bg_alpha: float = 0.5,
) -> np.ndarray:
    """
    Draw boxes + "Screw: NN%" labels on an OpenCV BGR image and return a copy.

    Label backgrounds are blended black at `label_bg_alpha` so the part
    underneath stays visible.
    """

    try:
        import cv2  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))

        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), BOX_COLOR, thickness=box_thickness)

        text = format_label(det, label)
        (tw, th), baseline = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Above the box if it fits, else inside.
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i
        x_text_right = min(x1i + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        roi = out[y_text_top : y_text_bottom + 1, x1i : x_text_right + 1]
        if roi.size:
            roi[:] = (roi * (1.0 - label_bg_alpha)).astype(out.dtype)

        cv2.putText(
            out,
            text,
            (x1i, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            TEXT_COLOR,
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
