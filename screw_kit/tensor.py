from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import TensorShapeError


class OutputTensor:
    """
    Read-only (channels, anchors) view over a raw YOLO-seg output.

    Row layout (channels first):
    - 0..3: cx, cy, w, h in input-resolution pixels
    - 4: confidence
    - 5..: mask coefficients

    A leading batch axis of size 1 is dropped. The caller's array is never
    written; the view is flagged read-only.
    """

    def __init__(
        self,
        preds: np.ndarray,
        *,
        channels: int = 37,
        anchors: int = 8400,
        box_channels: int = 4,
    ):
        if box_channels + 1 > channels:
            raise TensorShapeError(f"{channels} channels cannot hold {box_channels} box rows plus a confidence row")
        p = np.asarray(preds)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise TensorShapeError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
            p = p[0]
        if p.ndim != 2:
            raise TensorShapeError(f"Expected a 2D (channels, anchors) output, got shape {p.shape}")
        if p.shape != (channels, anchors):
            raise TensorShapeError(f"Expected output shape ({channels}, {anchors}), got {p.shape}")

        view = p.view()
        view.flags.writeable = False
        self._data = view
        self.channels = channels
        self.anchors = anchors
        self.box_channels = box_channels

    @property
    def shape(self) -> Tuple[int, int]:
        return self.channels, self.anchors

    @property
    def data(self) -> np.ndarray:
        return self._data

    def row(self, channel: int) -> np.ndarray:
        return self._data[channel]

    def column(self, anchor: int) -> np.ndarray:
        return self._data[:, anchor]

    def boxes(self) -> np.ndarray:
        """(box_channels, anchors) as cx, cy, w, h."""
        return self._data[: self.box_channels]

    def confidences(self) -> np.ndarray:
        return self._data[self.box_channels]

    def mask_coefficients(self, anchor: int) -> Tuple[float, ...]:
        return tuple(float(v) for v in self._data[self.box_channels + 1 :, anchor])
