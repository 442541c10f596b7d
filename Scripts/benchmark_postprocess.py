from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import List

import numpy as np

from screw_kit import YoloSegPostConfig, YoloSegPostprocessor, decode_candidates


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)),
        p50_ms=_percentile(ms_sorted, 50.0),
        p95_ms=_percentile(ms_sorted, 95.0),
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms p95={s.p95_ms:.3f}ms"


def synthetic_output(cfg: YoloSegPostConfig, positives: int, seed: int = 0) -> np.ndarray:
    """
    Random (37, 8400) output where `positives` anchors clear the threshold.
    """

    rng = np.random.default_rng(seed)
    out = np.zeros((cfg.total_channels, cfg.anchor_count), dtype=np.float32)
    size = float(cfg.input_size)
    out[0] = rng.uniform(0, size, cfg.anchor_count)
    out[1] = rng.uniform(0, size, cfg.anchor_count)
    out[2] = rng.uniform(5, 80, cfg.anchor_count)
    out[3] = rng.uniform(5, 80, cfg.anchor_count)
    out[4] = rng.uniform(0.0, cfg.conf_threshold * 0.99, cfg.anchor_count)
    hot = rng.choice(cfg.anchor_count, size=min(positives, cfg.anchor_count), replace=False)
    out[4, hot] = rng.uniform(cfg.conf_threshold, 1.0, hot.size)
    out[cfg.box_channel_count + 1 :] = rng.normal(size=(cfg.mask_coefficient_count, cfg.anchor_count))
    return out


def main() -> int:
    parser = argparse.ArgumentParser(description="Model-free benchmark of decode and decode+NMS latency.")
    parser.add_argument("--positives", type=int, default=300, help="Anchors above the confidence threshold.")
    parser.add_argument("--width", type=int, default=1280, help="Original image width.")
    parser.add_argument("--height", type=int, default=720, help="Original image height.")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=200, help="Recorded iterations.")
    args = parser.parse_args()

    if args.positives < 0:
        raise ValueError("--positives must be >= 0")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")

    cfg = YoloSegPostConfig(conf_threshold=args.conf, iou_threshold=args.iou)
    post = YoloSegPostprocessor(cfg)
    preds = synthetic_output(cfg, args.positives)

    t_decode: List[float] = []
    t_full: List[float] = []
    kept = 0
    for i in range(args.warmup + args.repeats):
        t0 = time.perf_counter()
        decode_candidates(preds, args.width, args.height, cfg)
        t1 = time.perf_counter()
        result = post.process(preds, args.width, args.height)
        t2 = time.perf_counter()
        if i < args.warmup:
            continue
        t_decode.append(t1 - t0)
        t_full.append(t2 - t1)
        kept = len(result)

    print(_format_summary("decode", _summarize_ms(t_decode)))
    print(_format_summary("decode_nms_assemble", _summarize_ms(t_full)))
    print(f"positives={args.positives} kept={kept}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
