from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Union


def _names_to_list(names: Dict[int, str], source: Union[str, Path]) -> List[str]:
    if not names:
        raise ValueError(f"No class names found in {source}")
    expected = list(range(len(names)))
    if sorted(names) != expected:
        raise ValueError(f"Class ids in {source} must be contiguous from 0, got {sorted(names)}")
    return [names[i] for i in expected]


def _parse_names_yaml(text: str) -> Dict[int, str]:
    """
    Parse the lightweight `names:` mapping exported next to YOLO models:

        names:
          0: paragraph
          1: marginalia
          ...

    Kept dependency-free; only this one mapping is read.
    """

    names: Dict[int, str] = {}
    in_names = False

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right

    return names


def load_labels(metadata_path: Union[str, Path]) -> List[str]:
    """
    Load the ordered label list; index in the list is the model class id.

    Supported formats:
    - JSON list: ["paragraph", "marginalia", ...] (labels.json)
    - JSON object: {"0": "paragraph", "1": "marginalia"}
    - YAML-ish `names:` mapping (metadata.yaml)
    """

    path = Path(metadata_path)
    if not path.exists():
        raise FileNotFoundError(f"Label metadata not found: {path}")
    text = path.read_text(encoding="utf-8")

    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid label JSON: {path}") from exc
        if isinstance(payload, list):
            if not payload or not all(isinstance(item, str) and item for item in payload):
                raise ValueError(f"{path} must be a non-empty list of label strings")
            return list(payload)
        if isinstance(payload, dict):
            try:
                names = {int(k): str(v) for k, v in payload.items()}
            except ValueError as exc:
                raise ValueError(f"Label ids in {path} must be integers") from exc
            return _names_to_list(names, path)
        raise ValueError(f"{path} must hold a JSON list or object")

    return _names_to_list(_parse_names_yaml(text), path)
