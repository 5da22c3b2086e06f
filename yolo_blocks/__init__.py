"""
Page block detection core for YOLO-style detectors.

Turns a raw (1, 4 + C, N) detector output into de-duplicated block polygons in
original page coordinates. Framework-agnostic: works with NumPy arrays emitted
by ONNX Runtime or TorchScript. OpenCV is only needed for preprocessing.
"""

from .errors import (
    BlockDetectionError,
    InvalidImageGeometry,
    InvalidPageUrl,
    RemoteWriteFailure,
    ShapeMismatch,
    UnmappedClass,
)
from .types import DecodedBoxes, FinalAnnotation, PaddedImageGeometry, RawDetectionTensor
from .letterbox import pad_to_square, preprocess
from .nms import NMSConfig, nms
from .rebase import rebase_boxes
from .postprocess import BlockPostConfig, BlockPostprocessor, decode_predictions
from .runtime import BlockPipeline, BufferScope, PreprocessConfig, load_pipeline, find_project_root, resolve_path
from .metadata import load_labels

__all__ = [
    "BlockDetectionError",
    "InvalidImageGeometry",
    "InvalidPageUrl",
    "RemoteWriteFailure",
    "ShapeMismatch",
    "UnmappedClass",
    "DecodedBoxes",
    "FinalAnnotation",
    "PaddedImageGeometry",
    "RawDetectionTensor",
    "pad_to_square",
    "preprocess",
    "NMSConfig",
    "nms",
    "rebase_boxes",
    "BlockPostConfig",
    "BlockPostprocessor",
    "decode_predictions",
    "BlockPipeline",
    "BufferScope",
    "PreprocessConfig",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
    "load_labels",
]
