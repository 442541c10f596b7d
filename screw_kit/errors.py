from __future__ import annotations


class TensorShapeError(ValueError):
    """
    Raised when the raw model output does not have the expected (channels, anchors) shape.
    """


class ImageSizeError(ValueError):
    """
    Raised when the original image width/height is not a positive integer.
    """
