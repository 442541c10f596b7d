"""
Plain-data views of a DetectionResult: confidence summary and JSON export.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .types import Detection, DetectionResult


@dataclass(frozen=True)
class DetectionSummary:
    count: int
    avg_confidence: Optional[float]
    max_confidence: Optional[float]
    min_confidence: Optional[float]


def summarize(result: DetectionResult) -> DetectionSummary:
    scores = result.scores
    if not scores:
        return DetectionSummary(count=0, avg_confidence=None, max_confidence=None, min_confidence=None)
    return DetectionSummary(
        count=len(scores),
        avg_confidence=sum(scores) / len(scores),
        max_confidence=max(scores),
        min_confidence=min(scores),
    )


def format_summary(summary: DetectionSummary) -> str:
    if summary.count == 0:
        return "No screws detected"
    # Percentages are truncated, not rounded.
    return (
        f"Detected screws: {summary.count}\n"
        f"Confidence: {int(summary.avg_confidence * 100)}% avg\n"
        f"Max: {int(summary.max_confidence * 100)}%, Min: {int(summary.min_confidence * 100)}%"
    )


def detection_to_dict(det: Detection) -> Dict[str, Any]:
    return {
        "box": asdict(det.box),
        "confidence": det.confidence,
        "mask_coefficients": list(det.mask_coefficients),
    }


def result_to_dict(result: DetectionResult) -> Dict[str, Any]:
    return {
        "image_width": result.image_width,
        "image_height": result.image_height,
        "detections": [detection_to_dict(d) for d in result.detections],
        "summary": asdict(summarize(result)),
    }


def write_result_json(path: Path, result: DetectionResult) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result_to_dict(result), indent=2, sort_keys=True), encoding="utf-8")
    return path
