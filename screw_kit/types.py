from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle in original image pixels.

    Coordinates are clamped to the image, but `left <= right` / `top <= bottom`
    is not enforced: degenerate boxes are allowed through.
    """

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class Detection:
    """
    One screw: box in original image coordinates, confidence and the raw
    mask coefficients of the anchor it came from.
    """

    box: Rect
    confidence: float
    mask_coefficients: Tuple[float, ...] = ()

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()


@dataclass(frozen=True)
class DetectionResult:
    detections: Tuple[Detection, ...]
    image_width: int
    image_height: int

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    @property
    def scores(self) -> Tuple[float, ...]:
        return tuple(d.confidence for d in self.detections)
