from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .nms import NMSConfig, nms
from .rebase import rebase_boxes
from .types import DecodedBoxes, FinalAnnotation, PaddedImageGeometry, RawDetectionTensor


@dataclass(frozen=True)
class BlockPostConfig:
    """
    Post-processing settings for page block detectors.
    """

    max_output_size: int = 500
    iou_threshold: float = 0.45
    score_threshold: float = 0.2

    def nms_config(self) -> NMSConfig:
        return NMSConfig(
            max_output_size=self.max_output_size,
            iou_threshold=self.iou_threshold,
            score_threshold=self.score_threshold,
        )


def decode_predictions(preds: np.ndarray, num_classes: Optional[int] = None) -> DecodedBoxes:
    """
    Decode a (1, 4 + C, N) output into y1, x1, y2, x2 boxes, best scores and class ids.

    All N detections are decoded; thresholds are applied later by NMS.
    """

    raw = RawDetectionTensor(preds, num_classes=num_classes)

    cx, cy = raw.centers_x(), raw.centers_y()
    w_box, h_box = raw.widths(), raw.heights()
    x1 = cx - w_box / 2
    y1 = cy - h_box / 2
    boxes = np.stack([y1, x1, y1 + h_box, x1 + w_box], axis=1)

    class_scores = raw.class_scores()
    # np.argmax keeps the first maximum, so ties go to the lowest class index.
    class_ids = np.argmax(class_scores, axis=1)
    scores = class_scores[np.arange(class_scores.shape[0]), class_ids]

    return DecodedBoxes(boxes=boxes, scores=scores, class_ids=class_ids.astype(np.int64))


class BlockPostprocessor:
    """
    Raw detector output -> de-duplicated block annotations in original image pixels.

    Stages: decode (cxcywh -> yxyx, max score, argmax class), class-agnostic NMS,
    then rebase from model input space through the padded square to the page.
    """

    def __init__(self, cfg: BlockPostConfig, labels: Sequence[str]):
        if not labels:
            raise ValueError("At least one label is required.")
        self.cfg = cfg
        self.labels = tuple(labels)

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    def decode(self, preds: np.ndarray) -> DecodedBoxes:
        return decode_predictions(preds, num_classes=self.num_classes)

    def suppress(self, decoded: DecodedBoxes) -> DecodedBoxes:
        keep = nms(decoded.boxes, decoded.scores, self.cfg.nms_config())
        return decoded.select(keep)

    def rebase(
        self,
        kept: DecodedBoxes,
        geometry: PaddedImageGeometry,
        model_size: Tuple[int, int],
        type_map: Mapping[str, Any],
        original_size: Optional[Tuple[int, int]] = None,
    ) -> List[FinalAnnotation]:
        return rebase_boxes(kept, geometry, model_size, self.labels, type_map, original_size=original_size)
