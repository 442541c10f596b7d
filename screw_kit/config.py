from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .postprocess import YoloSegPostConfig


@dataclass(frozen=True)
class DetectorSettings:
    post: YoloSegPostConfig
    model: Optional[str] = None
    channels_last: Optional[bool] = None


_INT_KEYS = ("input_size", "mask_coefficient_count", "box_channel_count", "anchor_count", "max_detections")
_FLOAT_KEYS = ("conf_threshold", "iou_threshold")


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_number(payload: Dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def parse_detector_config(payload: Dict[str, Any]) -> DetectorSettings:
    allowed = {"schema_version", "model", "channels_last", *_INT_KEYS, *_FLOAT_KEYS}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector config keys: {unknown}")

    if _require_int(payload, "schema_version") != 1:
        raise ValueError("detector config schema_version must be 1")

    post_kwargs: Dict[str, Any] = {}
    for key in _FLOAT_KEYS:
        value = _optional_number(payload, key)
        if value is not None:
            post_kwargs[key] = value
    for key in _INT_KEYS:
        value = _optional_int(payload, key)
        if value is not None:
            post_kwargs[key] = value

    model = payload.get("model")
    if model is not None and (not isinstance(model, str) or not model.strip()):
        raise ValueError("model must be a non-empty string if provided")
    channels_last = payload.get("channels_last")
    if channels_last is not None and not isinstance(channels_last, bool):
        raise ValueError("channels_last must be a boolean if provided")

    return DetectorSettings(post=YoloSegPostConfig(**post_kwargs), model=model, channels_last=channels_last)


def load_detector_config(path: Path) -> DetectorSettings:
    """
    Load detector settings from JSON, e.g.

        {"schema_version": 1, "model": "models/best.onnx", "conf_threshold": 0.3}

    Omitted thresholds/sizes keep the YoloSegPostConfig defaults.
    """

    if not path.exists():
        raise FileNotFoundError(f"Detector config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector config must be a JSON object")
    return parse_detector_config(payload)
