from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

TOKEN_ENV_VAR = "ESCRIPTORIUM_API_TOKEN"


@dataclass(frozen=True)
class AnnotatorProfile:
    schema_version: int
    model: str
    labels: str
    backend: Optional[str] = None
    api_token: Optional[str] = None
    api_base: Optional[str] = None
    iou_threshold: float = 0.45
    score_threshold: float = 0.2
    max_output_size: int = 500
    timeout_s: float = 30.0

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("annotator profile schema_version must be 1")
        if not self.model:
            raise ValueError("model must be a non-empty path")
        if not self.labels:
            raise ValueError("labels must be a non-empty path")
        if self.backend is not None and self.backend.lower() not in ("onnxruntime", "torchscript"):
            raise ValueError("backend must be 'onnxruntime' or 'torchscript'")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be in [0, 1]")
        if self.max_output_size <= 0:
            raise ValueError("max_output_size must be > 0")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")

    def resolved_token(self) -> Optional[str]:
        return self.api_token or os.environ.get(TOKEN_ENV_VAR) or None


def _require_str(payload: Dict[str, Any], key: str) -> str:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string if provided")
    return value or None


def _number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_annotator_profile(path: Path) -> AnnotatorProfile:
    if not path.exists():
        raise FileNotFoundError(f"Annotator profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid annotator profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Annotator profile must be a JSON object")

    allowed = {
        "schema_version",
        "model",
        "labels",
        "backend",
        "api_token",
        "api_base",
        "iou_threshold",
        "score_threshold",
        "max_output_size",
        "timeout_s",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown annotator profile keys: {unknown}")

    max_output_size = payload.get("max_output_size", 500)
    if isinstance(max_output_size, bool) or not isinstance(max_output_size, int):
        raise ValueError("max_output_size must be an integer")

    return AnnotatorProfile(
        schema_version=_require_int(payload, "schema_version"),
        model=_require_str(payload, "model"),
        labels=_require_str(payload, "labels"),
        backend=_optional_str(payload, "backend"),
        api_token=_optional_str(payload, "api_token"),
        api_base=_optional_str(payload, "api_base"),
        iou_threshold=_number(payload, "iou_threshold", 0.45),
        score_threshold=_number(payload, "score_threshold", 0.2),
        max_output_size=int(max_output_size),
        timeout_s=_number(payload, "timeout_s", 30.0),
    )
