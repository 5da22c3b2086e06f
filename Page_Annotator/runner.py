from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx
import numpy as np

from yolo_blocks.runtime import BlockPipeline
from yolo_blocks.types import FinalAnnotation

from .pages import PageRef, parse_page_url
from .remote import AnnotationSink, TypeMapResolver

logger = logging.getLogger(__name__)


@dataclass
class AnnotationReport:
    page: PageRef
    type_map: Dict[str, Any]
    annotations: List[FinalAnnotation] = field(default_factory=list)
    created: int = 0


async def annotate_page(
    image_bgr: np.ndarray,
    pipeline: BlockPipeline,
    client: httpx.AsyncClient,
    page_url: str,
    *,
    original_size: Optional[Tuple[int, int]] = None,
    api_base: Optional[str] = None,
    dry_run: bool = False,
) -> AnnotationReport:
    """
    Detect blocks on one page capture and create them on the server.

    Steps: parse the page URL, create block types for every label, mark them valid
    on the document, detect, then create the blocks. Any failure propagates as-is;
    the pipeline keeps its loaded model so the caller can simply retry.

    Args:
        image_bgr: page capture (H, W, 3), BGR
        pipeline: loaded block detector
        client: authenticated client (see `remote.make_client`)
        page_url: editor URL of the page being annotated
        original_size: full-resolution (width, height) of the page when the capture is scaled
        api_base: replaces the page's scheme + host for API calls
        dry_run: detect only, with a placeholder type per label; nothing is written
    """

    page = parse_page_url(page_url)
    if api_base:
        page = dataclasses.replace(page, domain=api_base.rstrip("/"))

    if dry_run:
        type_map: Dict[str, Any] = {label: label for label in pipeline.labels}
    else:
        resolver = TypeMapResolver(client, page)
        type_map = await resolver.resolve(pipeline.labels)
        await resolver.update_valid_block_types(type_map)

    annotations = await pipeline.detect(image_bgr, type_map, original_size=original_size)
    report = AnnotationReport(page=page, type_map=type_map, annotations=annotations)
    if not annotations:
        logger.info("No blocks detected on page %s", page.page_id)
        return report

    if not dry_run:
        report.created = await AnnotationSink(client).create_blocks(page, annotations)
    return report
