from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .errors import InvalidImageGeometry, ShapeMismatch

Point = Tuple[float, float]


class RawDetectionTensor:
    """
    Typed view over a raw detector output shaped (1, 4 + C, N).

    Attribute axis layout: cx, cy, w, h (model input pixels) followed by C class scores.
    The layout is fixed by the exported model and is never guessed from the data.
    """

    BOX_ATTRS = 4

    def __init__(self, preds: np.ndarray, num_classes: Optional[int] = None):
        p = np.asarray(preds)
        expected = f"(1, 4 + {num_classes if num_classes is not None else 'C'}, N)"
        if p.ndim != 3 or p.shape[0] != 1:
            raise ShapeMismatch(p.shape, expected)
        attrs = p.shape[1]
        if attrs < self.BOX_ATTRS + 1:
            raise ShapeMismatch(p.shape, expected)
        if num_classes is not None and attrs != self.BOX_ATTRS + num_classes:
            raise ShapeMismatch(p.shape, expected)
        self._data = p[0]  # (4 + C, N)

    @property
    def num_classes(self) -> int:
        return self._data.shape[0] - self.BOX_ATTRS

    @property
    def num_detections(self) -> int:
        return self._data.shape[1]

    def transposed(self) -> np.ndarray:
        # (N, 4 + C): one row per detection
        return self._data.T

    def centers_x(self) -> np.ndarray:
        return self._data[0]

    def centers_y(self) -> np.ndarray:
        return self._data[1]

    def widths(self) -> np.ndarray:
        return self._data[2]

    def heights(self) -> np.ndarray:
        return self._data[3]

    def class_scores(self) -> np.ndarray:
        """(N, C) score matrix."""
        return self.transposed()[:, self.BOX_ATTRS :]


@dataclass(frozen=True)
class PaddedImageGeometry:
    original_width: int
    original_height: int
    max_size: int
    x_ratio: float
    y_ratio: float

    @classmethod
    def from_size(cls, width: int, height: int) -> "PaddedImageGeometry":
        if width <= 0 or height <= 0:
            raise InvalidImageGeometry(width, height)
        max_size = max(width, height)
        return cls(
            original_width=int(width),
            original_height=int(height),
            max_size=int(max_size),
            x_ratio=max_size / width,
            y_ratio=max_size / height,
        )


@dataclass(frozen=True)
class DecodedBoxes:
    """
    Parallel arrays indexed by detection order.

    boxes: (N, 4) as y1, x1, y2, x2 in model input pixels
    scores: (N,) best class score
    class_ids: (N,) argmax class index
    """

    boxes: np.ndarray
    scores: np.ndarray
    class_ids: np.ndarray

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def select(self, indices: np.ndarray) -> "DecodedBoxes":
        idx = np.asarray(indices, dtype=np.int64)
        return DecodedBoxes(boxes=self.boxes[idx], scores=self.scores[idx], class_ids=self.class_ids[idx])


@dataclass(frozen=True)
class FinalAnnotation:
    """
    A block polygon in original image pixels, vertices ordered TL, TR, BR, BL.
    """

    box: Tuple[Point, Point, Point, Point]
    typology: Any

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        (x1, y1), _, (x2, y2), _ = self.box
        return x1, y1, x2, y2

    def to_payload(self, page_id: Any = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "box": [[float(x), float(y)] for x, y in self.box],
            "typology": self.typology,
        }
        if page_id is not None:
            payload["document_part"] = page_id
        return payload


def polygon_from_xyxy(x1: float, y1: float, x2: float, y2: float) -> Tuple[Point, Point, Point, Point]:
    return (x1, y1), (x2, y1), (x2, y2), (x1, y2)
