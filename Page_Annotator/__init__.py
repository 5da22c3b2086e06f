"""
Page annotation layer built on top of `yolo_blocks`.

`yolo_blocks` stays responsible for detection; this package handles:
- editor page URLs
- remote block types (label -> type id) and block creation
- annotator profile (JSON) configuration
- dumps of raw predictions and created blocks
"""

from __future__ import annotations

from .config import AnnotatorProfile, load_annotator_profile
from .pages import PageRef, parse_page_url
from .remote import AnnotationSink, TypeMapResolver, make_client
from .reporting import write_annotations, write_detection_attributes, write_raw_predictions
from .runner import AnnotationReport, annotate_page

__all__ = [
    "AnnotatorProfile",
    "load_annotator_profile",
    "PageRef",
    "parse_page_url",
    "AnnotationSink",
    "TypeMapResolver",
    "make_client",
    "write_annotations",
    "write_detection_attributes",
    "write_raw_predictions",
    "AnnotationReport",
    "annotate_page",
]
