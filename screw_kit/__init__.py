"""
Screw detection post-processing for single-class YOLO-seg exports.

Decodes the raw (37, 8400) output of a 640x640 model into confidence-ranked,
non-overlapping boxes in original image pixels, each carrying its 32 mask
coefficients. The core needs only NumPy; OpenCV is used for preprocessing and
drawing, ONNX Runtime for the optional model backend.
"""

from .errors import ImageSizeError, TensorShapeError
from .types import Detection, DetectionResult, Rect
from .tensor import OutputTensor
from .nms import NMSConfig, iou, nms
from .postprocess import Candidates, YoloSegPostConfig, YoloSegPostprocessor, decode_candidates
from .runtime import InputArena, ScrewDetector, find_project_root, load_detector, preprocess, resolve_path
from .config import DetectorSettings, load_detector_config
from .report import DetectionSummary, format_summary, result_to_dict, summarize, write_result_json
from .visualize import draw_detections

__all__ = [
    "ImageSizeError",
    "TensorShapeError",
    "Detection",
    "DetectionResult",
    "Rect",
    "OutputTensor",
    "NMSConfig",
    "iou",
    "nms",
    "Candidates",
    "YoloSegPostConfig",
    "YoloSegPostprocessor",
    "decode_candidates",
    "InputArena",
    "ScrewDetector",
    "find_project_root",
    "load_detector",
    "preprocess",
    "resolve_path",
    "DetectorSettings",
    "load_detector_config",
    "DetectionSummary",
    "format_summary",
    "result_to_dict",
    "summarize",
    "write_result_json",
    "draw_detections",
]
