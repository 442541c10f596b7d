import argparse
import logging
from dataclasses import replace
from pathlib import Path

import cv2

from screw_kit import (
    YoloSegPostConfig,
    draw_detections,
    format_summary,
    load_detector,
    load_detector_config,
    summarize,
    write_result_json,
)


logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect screws in an image and draw boxes + confidence labels.")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--model", default=None, help="Path to the exported YOLO-seg model (.onnx).")
    parser.add_argument("--config", default=None, help="Optional detector config JSON.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (overrides config).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (overrides config).")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Optional output path for the annotated image.")
    parser.add_argument("--json", default=None, help="Optional output path for detections as JSON.")
    parser.add_argument("--show", action="store_true", help="Show a window with the annotated image.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    post_cfg = YoloSegPostConfig()
    model = None
    channels_last = None
    if args.config:
        settings = load_detector_config(Path(args.config))
        post_cfg = settings.post
        model = settings.model
        channels_last = settings.channels_last
    if args.conf is not None:
        post_cfg = replace(post_cfg, conf_threshold=args.conf)
    if args.iou is not None:
        post_cfg = replace(post_cfg, iou_threshold=args.iou)
    model = args.model or model or "models/best.onnx"

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    detector = load_detector(model, post_cfg=post_cfg, channels_last=channels_last, onnx_providers=onnx_providers)

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    result = detector(img)
    for i, det in enumerate(result, start=1):
        print(f"Screw {i}: {det.confidence:.3f} {det.as_xyxy()}")
    print(format_summary(summarize(result)))

    if args.json:
        path = write_result_json(Path(args.json), result)
        logger.info("Wrote detections to %s", path)

    vis = draw_detections(img, result)
    if args.out:
        ok = cv2.imwrite(args.out, vis)
        if not ok:
            raise RuntimeError(f"Failed to write output image: {args.out}")

    if args.show:
        cv2.imshow("detections", vis)
        cv2.waitKey(0)
        cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
