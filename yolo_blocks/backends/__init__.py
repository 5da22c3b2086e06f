"""
Optional inference backends for yolo_blocks.

Backends live in their own modules so pre/post-processing can be used without
installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
