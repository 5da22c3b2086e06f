from __future__ import annotations

from typing import Optional, Sequence, Tuple


class BlockDetectionError(Exception):
    """
    Base class for every error raised by the block detection pipeline.
    """


class ShapeMismatch(BlockDetectionError, ValueError):
    def __init__(self, shape: Tuple[int, ...], expected: str):
        self.shape = tuple(int(s) for s in shape)
        self.expected = expected
        super().__init__(f"Unexpected prediction shape {self.shape}, expected {expected}.")


class InvalidImageGeometry(BlockDetectionError, ValueError):
    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        super().__init__(f"Image size must be positive, got width={width}, height={height}.")


class UnmappedClass(BlockDetectionError, KeyError):
    def __init__(self, class_id: int, label: Optional[str] = None, labels: Sequence[str] = ()):
        self.class_id = int(class_id)
        self.label = label
        if label is None:
            msg = f"Class id {self.class_id} is outside the label list ({len(labels)} labels)."
        else:
            msg = f"Label {label!r} (class id {self.class_id}) has no block type mapped."
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise.
        return str(self.args[0])


class RemoteWriteFailure(BlockDetectionError, RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidPageUrl(BlockDetectionError, ValueError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Please navigate to a valid document page to annotate (got {url!r}).")
