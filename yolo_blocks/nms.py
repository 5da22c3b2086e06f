from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True)
class NMSConfig:
    max_output_size: int = 500
    iou_threshold: float = 0.45
    score_threshold: float = 0.2

    def __post_init__(self) -> None:
        if self.max_output_size < 0:
            raise ValueError("max_output_size must be >= 0")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig = NMSConfig()) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N, 4) as y1, x1, y2, x2 and scores shape (N,).

    Boxes scoring at or below `score_threshold` never become candidates. Returns the
    kept indices in selection order: descending score, ties by original index.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes and scores disagree: {boxes.shape[0]} vs {scores.shape[0]}")

    if boxes.size == 0 or cfg.max_output_size == 0:
        return np.empty((0,), dtype=np.int32)

    # Corners may come flipped; normalize before computing areas.
    y1 = np.minimum(boxes[:, 0], boxes[:, 2])
    x1 = np.minimum(boxes[:, 1], boxes[:, 3])
    y2 = np.maximum(boxes[:, 0], boxes[:, 2])
    x2 = np.maximum(boxes[:, 1], boxes[:, 3])
    areas = (x2 - x1) * (y2 - y1)

    candidates = np.where(scores > cfg.score_threshold)[0]
    order = candidates[np.argsort(-scores[candidates], kind="stable")]
    keep = []

    while order.size > 0 and len(keep) < cfg.max_output_size:
        i = order[0]
        keep.append(i)

        rest = order[1:]
        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[rest] - inter
        iou = np.where(union > 0, inter / np.maximum(union, 1e-12), 0.0)

        order = rest[iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int32)
