from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .letterbox import preprocess
from .postprocess import BlockPostConfig, BlockPostprocessor
from .types import FinalAnnotation, PaddedImageGeometry


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, so `models/...` resolves the same from any cwd.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, the project root otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PreprocessConfig:
    pad_value: int = 0
    channels_first: bool = True


@dataclass(frozen=True)
class RawPrediction:
    preds: np.ndarray
    geometry: PaddedImageGeometry
    model_size: Tuple[int, int]


class BufferScope:
    """
    Holds the intermediate arrays of one detection call and drops them on exit,
    whether the call returns or raises.
    """

    def __init__(self) -> None:
        self._buffers: Dict[str, np.ndarray] = {}

    def __enter__(self) -> "BufferScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    def __setitem__(self, name: str, value: np.ndarray) -> None:
        self._buffers[name] = value

    def __getitem__(self, name: str) -> np.ndarray:
        return self._buffers[name]

    def __len__(self) -> int:
        return len(self._buffers)

    def __iter__(self) -> Iterator[str]:
        return iter(self._buffers)

    def release(self) -> None:
        self._buffers.clear()


class BlockPipeline:
    """
    Preprocess (pad to square + resize) -> inference -> decode -> NMS -> rebase.

    Expects BGR images (OpenCV-style) as `np.ndarray` and returns `FinalAnnotation`s in
    original image coordinates. Calls on one pipeline are serialized: the intermediate
    buffers of a pass belong to that pass only.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], Any],
        labels: Sequence[str],
        *,
        model_size: Optional[Tuple[int, int]] = None,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        preprocess_cfg: PreprocessConfig = PreprocessConfig(),
        post_cfg: BlockPostConfig = BlockPostConfig(),
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.preprocess_cfg = preprocess_cfg
        self.post = BlockPostprocessor(post_cfg, labels)

        if model_size is None:
            model_size = getattr(backend, "input_size", None)
        if model_size is None:
            raise ValueError("model_size is required when the backend does not report its input size.")
        model_w, model_h = (int(v) for v in model_size)
        if model_w <= 0 or model_h <= 0:
            raise ValueError(f"Model input size must be positive, got {model_w}x{model_h}")
        self.model_size = (model_w, model_h)

        self._lock = asyncio.Lock()

    @property
    def labels(self) -> Tuple[str, ...]:
        return self.post.labels

    async def _infer(self, blob: np.ndarray) -> np.ndarray:
        out = self._infer_fn(blob)
        if inspect.isawaitable(out):
            out = await out
        return np.asarray(out)

    async def raw(self, image_bgr: np.ndarray) -> RawPrediction:
        """
        Run preprocessing and inference only, returning the untouched model output.
        """

        async with self._lock:
            with BufferScope() as scope:
                blob, _, _ = preprocess(
                    image_bgr,
                    *self.model_size,
                    pad_value=self.preprocess_cfg.pad_value,
                    channels_first=self.preprocess_cfg.channels_first,
                )
                geometry = PaddedImageGeometry.from_size(image_bgr.shape[1], image_bgr.shape[0])
                scope["input"] = blob
                preds = await self._infer(blob)
                return RawPrediction(preds=preds, geometry=geometry, model_size=self.model_size)

    async def detect(
        self,
        image_bgr: np.ndarray,
        type_map: Mapping[str, Any],
        original_size: Optional[Tuple[int, int]] = None,
    ) -> List[FinalAnnotation]:
        async with self._lock:
            with BufferScope() as scope:
                blob, _, _ = preprocess(
                    image_bgr,
                    *self.model_size,
                    pad_value=self.preprocess_cfg.pad_value,
                    channels_first=self.preprocess_cfg.channels_first,
                )
                geometry = PaddedImageGeometry.from_size(image_bgr.shape[1], image_bgr.shape[0])
                scope["input"] = blob
                scope["preds"] = await self._infer(blob)

                decoded = self.post.decode(scope["preds"])
                scope["boxes"], scope["scores"] = decoded.boxes, decoded.scores

                kept = self.post.suppress(decoded)
                logger.debug("%d of %d detections kept after NMS", len(kept), len(decoded))
                if len(kept) == 0:
                    return []

                return self.post.rebase(kept, geometry, self.model_size, type_map, original_size)


def load_pipeline(
    model_path: PathLike,
    labels: Sequence[str],
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    model_size: Optional[Tuple[int, int]] = None,
    preprocess_cfg: Optional[PreprocessConfig] = None,
    post_cfg: BlockPostConfig = BlockPostConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_output_index: int = 0,
) -> BlockPipeline:
    """
    Create a pipeline for a model on disk.

        pipe = load_pipeline("models/blocks.onnx", labels)

    Args:
        model_path: path to the exported detector; relative paths resolve against project root
        labels: ordered class labels, index == class id
        backend: "onnxruntime" / "torchscript", or None to infer from extension
        model_size: (width, height) override when the backend cannot report it
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(resolved, OnnxRuntimeBackendConfig(providers=onnx_providers))
        if preprocess_cfg is None:
            preprocess_cfg = PreprocessConfig(channels_first=ort_backend.channels_first)
        logger.info("Loaded %s with onnxruntime (%s)", resolved.name, ", ".join(ort_backend.providers_in_use))
        return BlockPipeline(
            ort_backend.infer,
            labels,
            model_size=model_size,
            backend=ort_backend,
            backend_name="onnxruntime",
            preprocess_cfg=preprocess_cfg,
            post_cfg=post_cfg,
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, output_index=torch_output_index, input_size=model_size),
        )
        logger.info("Loaded %s with torchscript on %s", resolved.name, torch_device)
        return BlockPipeline(
            ts_backend.infer,
            labels,
            model_size=model_size,
            backend=ts_backend,
            backend_name="torchscript",
            preprocess_cfg=preprocess_cfg or PreprocessConfig(),
            post_cfg=post_cfg,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
