from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import UnmappedClass
from .types import DecodedBoxes, FinalAnnotation, PaddedImageGeometry, polygon_from_xyxy


def resolve_typology(class_id: int, labels: Sequence[str], type_map: Mapping[str, Any]) -> Any:
    if class_id < 0 or class_id >= len(labels):
        raise UnmappedClass(class_id, labels=labels)
    label = labels[class_id]
    if label not in type_map:
        raise UnmappedClass(class_id, label=label, labels=labels)
    return type_map[label]


def scale_factors(
    geometry: PaddedImageGeometry,
    model_size: Tuple[int, int],
    original_size: Optional[Tuple[int, int]] = None,
) -> Tuple[float, float]:
    """
    Per-axis factors taking model input pixels to original image pixels.

    `original_size` is the true (width, height) of the page. It can differ from the
    captured image the geometry was measured on; it defaults to the captured size.
    """

    model_w, model_h = model_size
    if original_size is None:
        orig_w, orig_h = geometry.original_width, geometry.original_height
    else:
        orig_w, orig_h = original_size
    return geometry.x_ratio * (orig_w / model_w), geometry.y_ratio * (orig_h / model_h)


def rebase_boxes(
    decoded: DecodedBoxes,
    geometry: PaddedImageGeometry,
    model_size: Tuple[int, int],
    labels: Sequence[str],
    type_map: Mapping[str, Any],
    original_size: Optional[Tuple[int, int]] = None,
) -> List[FinalAnnotation]:
    """
    Map surviving (y1, x1, y2, x2) boxes to original-image polygons with their block type.

    Every typology is resolved before any annotation is built, so an unmapped class
    aborts the whole batch instead of producing a partial one.
    """

    typologies = [resolve_typology(int(cid), labels, type_map) for cid in decoded.class_ids]
    scale_x, scale_y = scale_factors(geometry, model_size, original_size)

    boxes = np.asarray(decoded.boxes, dtype=np.float64).reshape(-1, 4)
    annotations: List[FinalAnnotation] = []
    for (y1, x1, y2, x2), typology in zip(boxes, typologies):
        annotations.append(
            FinalAnnotation(
                box=polygon_from_xyxy(
                    float(x1 * scale_x),
                    float(y1 * scale_y),
                    float(x2 * scale_x),
                    float(y2 * scale_y),
                ),
                typology=typology,
            )
        )
    return annotations
