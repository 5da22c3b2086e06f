"""
JSON dumps of what the detector saw and what was sent to the server.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence

import numpy as np

from yolo_blocks.types import FinalAnnotation


def timestamp_str(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("%Y-%m-%d_%H-%M-%S")


def write_raw_predictions(
    preds: np.ndarray,
    out_dir: Path,
    *,
    name: str = "Predictions",
    now: Optional[datetime] = None,
) -> Path:
    """
    Write a raw model output as `{"shape": [...], "data": [...]}` (row-major, flattened).
    """

    arr = np.asarray(preds)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{name}{timestamp_str(now)}.json"
    payload = {"shape": [int(s) for s in arr.shape], "data": arr.astype(np.float64).ravel().tolist()}
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def write_annotations(
    annotations: Sequence[FinalAnnotation],
    out_dir: Path,
    *,
    page_id: Any = None,
    name: str = "Blocks",
    now: Optional[datetime] = None,
) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{name}{timestamp_str(now)}.json"
    blocks = [a.to_payload(page_id=page_id) for a in annotations]
    path.write_text(json.dumps({"blocks": blocks}, indent=2, sort_keys=True), encoding="utf-8")
    return path


def write_detection_attributes(
    preds: np.ndarray,
    out_dir: Path,
    *,
    max_detections: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Path]:
    """
    Write one `Detection_<i>_<ts>.json` per column of a (1, 4 + C, N) output, then the
    whole attribute block as `AllAttributes_<ts>.json`. Detection files are numbered from 1.
    """

    arr = np.asarray(preds)
    if arr.ndim != 3 or arr.shape[0] != 1:
        raise ValueError(f"Expected predictions of shape (1, 4 + C, N), got {arr.shape}")

    now = now or datetime.now()
    num_detections = arr.shape[2]
    if max_detections is not None:
        num_detections = min(num_detections, max_detections)

    paths = [
        write_raw_predictions(arr[:, :, i : i + 1], out_dir, name=f"Detection_{i + 1}_", now=now)
        for i in range(num_detections)
    ]
    paths.append(write_raw_predictions(arr, out_dir, name="AllAttributes_", now=now))
    return paths
