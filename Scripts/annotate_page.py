import argparse
import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Optional, Tuple

import cv2
import httpx

from Page_Annotator import AnnotatorProfile, annotate_page, load_annotator_profile, make_client, write_annotations, write_detection_attributes, write_raw_predictions
from yolo_blocks import BlockPostConfig, BlockDetectionError, load_labels, load_pipeline


def _parse_size(value: Optional[str]) -> Optional[Tuple[int, int]]:
    if not value:
        return None
    try:
        w, h = (int(v) for v in value.lower().split("x", 1))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from exc
    return w, h


def _profile_from_args(args: argparse.Namespace) -> AnnotatorProfile:
    if args.config:
        profile = load_annotator_profile(Path(args.config))
    else:
        if not args.model or not args.labels:
            raise SystemExit("--model and --labels are required without --config")
        profile = AnnotatorProfile(schema_version=1, model=args.model, labels=args.labels)

    overrides = {
        "model": args.model,
        "labels": args.labels,
        "backend": args.backend,
        "api_token": args.token,
        "api_base": args.api_base,
        "iou_threshold": args.iou,
        "score_threshold": args.score,
        "max_output_size": args.max_output,
    }
    values = {k: v for k, v in overrides.items() if v is not None}
    if not values:
        return profile
    return dataclasses.replace(profile, **values)


async def _run(args: argparse.Namespace) -> int:
    profile = _profile_from_args(args)
    token = profile.resolved_token()
    if not token and not args.dry_run:
        raise SystemExit("Please provide an API token (--token, profile api_token or ESCRIPTORIUM_API_TOKEN).")

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    labels = load_labels(profile.labels)
    pipeline = load_pipeline(
        model_path=profile.model,
        labels=labels,
        backend=profile.backend,
        model_size=_parse_size(args.imgsz),
        post_cfg=BlockPostConfig(
            max_output_size=profile.max_output_size,
            iou_threshold=profile.iou_threshold,
            score_threshold=profile.score_threshold,
        ),
    )

    raw = await pipeline.raw(img) if (args.dump_raw or args.dump_detections) else None
    if args.dump_raw:
        print(f"Wrote raw predictions: {write_raw_predictions(raw.preds, Path(args.dump_raw))}")
    if args.dump_detections:
        paths = write_detection_attributes(raw.preds, Path(args.dump_detections))
        print(f"Wrote {len(paths)} detection files to {args.dump_detections}")

    async with make_client(token or "dry-run", timeout_s=profile.timeout_s) as client:
        report = await annotate_page(
            img,
            pipeline,
            client,
            args.page_url,
            original_size=_parse_size(args.original_size),
            api_base=profile.api_base,
            dry_run=args.dry_run,
        )

    for ann in report.annotations:
        print(ann.typology, ann.as_xyxy())
    if args.out_dir:
        path = write_annotations(report.annotations, Path(args.out_dir), page_id=report.page.page_id)
        print(f"Wrote blocks: {path}")
    print(f"Blocks detected: {len(report.annotations)}, created: {report.created}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect layout blocks on a page image and push them to the document API.")
    parser.add_argument("--image", required=True, help="Path to the captured page image.")
    parser.add_argument("--page-url", required=True, help="Editor URL, e.g. https://host/document/12/part/34/edit/")
    parser.add_argument("--config", default=None, help="Annotator profile JSON.")
    parser.add_argument("--model", default=None, help="Path to the block detector (.onnx/.pt).")
    parser.add_argument("--labels", default=None, help="labels.json or metadata.yaml with the class names.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--token", default=None, help="API token (falls back to ESCRIPTORIUM_API_TOKEN).")
    parser.add_argument("--api-base", default=None, help="Override scheme + host used for API calls.")
    parser.add_argument("--imgsz", default=None, help="Model input WIDTHxHEIGHT when the model does not report it.")
    parser.add_argument("--original-size", default=None, help="Full page WIDTHxHEIGHT when the image is a scaled capture.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (default 0.45).")
    parser.add_argument("--score", type=float, default=None, help="Score threshold (default 0.2).")
    parser.add_argument("--max-output", type=int, default=None, help="Max blocks kept after NMS (default 500).")
    parser.add_argument("--dump-raw", default=None, help="Directory to dump the raw model output as JSON.")
    parser.add_argument("--dump-detections", default=None, help="Directory to dump every raw detection as its own JSON file.")
    parser.add_argument("--out-dir", default=None, help="Directory to write the detected blocks as JSON.")
    parser.add_argument("--dry-run", action="store_true", help="Detect only; do not talk to the server.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING...).")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        return asyncio.run(_run(args))
    except (BlockDetectionError, httpx.HTTPError, OSError, ValueError) as exc:
        print(f"Error during annotation: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
