from typing import Tuple

import numpy as np

from .errors import InvalidImageGeometry
from .types import PaddedImageGeometry


def _require_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for preprocess(). Install with `pip install opencv-python`.") from e
    return cv2


def pad_to_square(image: np.ndarray, pad_value: int = 0) -> Tuple[np.ndarray, PaddedImageGeometry]:
    """
    Pad an (H, W, C) image on the bottom and right so it becomes max(H, W) square.

    The original content stays anchored at the top-left origin, so a coordinate in
    padded space only needs scaling (never shifting) to get back to the source image.
    """

    if image is None or not hasattr(image, "shape") or image.ndim != 3:
        raise ValueError(f"Expected image shape (H, W, C), got {getattr(image, 'shape', None)}")

    h, w = image.shape[:2]
    if w <= 0 or h <= 0:
        raise InvalidImageGeometry(w, h)

    geometry = PaddedImageGeometry.from_size(w, h)
    max_size = geometry.max_size
    if (h, w) == (max_size, max_size):
        return image, geometry

    padded = np.full((max_size, max_size, image.shape[2]), pad_value, dtype=image.dtype)
    padded[:h, :w] = image
    return padded, geometry


def preprocess(
    image_bgr: np.ndarray,
    model_width: int,
    model_height: int,
    *,
    pad_value: int = 0,
    channels_first: bool = True,
) -> Tuple[np.ndarray, float, float]:
    """
    Turn a BGR page capture into a model input blob.

    Returns:
        blob: float32 in [0, 1], (1, 3, H, W) or (1, H, W, 3) when channels_first=False
        x_ratio: max_size / width
        y_ratio: max_size / height
    """

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
    if model_width <= 0 or model_height <= 0:
        raise ValueError(f"Model input size must be positive, got {model_width}x{model_height}")

    cv2 = _require_cv2()

    padded, geometry = pad_to_square(image_bgr, pad_value=pad_value)
    if padded.shape[:2] != (model_height, model_width):
        resized = cv2.resize(padded, (int(model_width), int(model_height)), interpolation=cv2.INTER_LINEAR)
    else:
        resized = padded

    # BGR -> RGB, normalize, add batch
    blob = resized[:, :, ::-1].astype(np.float32) / 255.0
    if channels_first:
        blob = np.transpose(blob, (2, 0, 1))
    blob = np.ascontiguousarray(blob[None, ...])

    return blob, geometry.x_ratio, geometry.y_ratio
