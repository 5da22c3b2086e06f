"""
Clients for the document-management REST API.

Only three calls matter here: create a block type per label, declare those types
valid on the document, and create one block per detected region.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import httpx

from yolo_blocks.errors import RemoteWriteFailure
from yolo_blocks.types import FinalAnnotation

from .pages import PageRef

logger = logging.getLogger(__name__)


def make_client(api_token: str, timeout_s: float = 30.0, **kwargs: Any) -> httpx.AsyncClient:
    if not api_token:
        raise ValueError("An API token is required.")
    headers = {
        "Authorization": f"Token {api_token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    return httpx.AsyncClient(headers=headers, timeout=timeout_s, **kwargs)


def _error_detail(res: httpx.Response) -> str:
    try:
        return str(res.json())
    except ValueError:
        return res.reason_phrase or res.text


class TypeMapResolver:
    """Creates one remote block type per label and remembers label -> pk."""

    def __init__(self, client: httpx.AsyncClient, page: PageRef):
        self._client = client
        self._page = page

    async def resolve(self, labels: Sequence[str]) -> Dict[str, Any]:
        """
        Map every label to the pk of its block type.

        A label whose creation fails is logged and left out; detections of that class
        are rejected later instead of being pushed without a type.
        """

        type_map: Dict[str, Any] = {}
        for label in labels:
            try:
                res = await self._client.post(self._page.block_types_url, json={"name": label})
            except httpx.HTTPError as exc:
                logger.error("Failed to create type %s: %s", label, exc)
                continue
            if res.is_error:
                logger.error("Error creating type %s: %s", label, _error_detail(res))
                continue
            try:
                body = res.json()
            except ValueError:
                logger.error("Type %s created but the response is not JSON: %s", label, res.text[:200])
                continue
            pk = body.get("pk") if isinstance(body, dict) else None
            if pk is None:
                logger.error("Type %s created without a pk: %s", label, res.text)
                continue
            type_map[label] = pk
            logger.info("Created type %s with pk %s", label, pk)

        missing = [label for label in labels if label not in type_map]
        if missing:
            logger.warning("No block type for labels: %s", ", ".join(missing))
        return type_map

    async def update_valid_block_types(self, type_map: Mapping[str, Any]) -> None:
        payload = {"valid_block_types": [{"pk": pk} for pk in type_map.values()]}
        try:
            res = await self._client.patch(self._page.document_url, json=payload)
        except httpx.HTTPError as exc:
            raise RemoteWriteFailure(
                f"Failed to update valid block types for document {self._page.document_id}: {exc}"
            ) from exc
        if res.is_error:
            raise RemoteWriteFailure(
                f"Failed to update valid block types for document {self._page.document_id}: {_error_detail(res)}",
                status_code=res.status_code,
            )
        logger.info("Updated valid block types for document %s", self._page.document_id)


class AnnotationSink:
    """Pushes annotations one block at a time; stops at the first failed create."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def create_block(self, page: PageRef, annotation: FinalAnnotation) -> Optional[Dict[str, Any]]:
        payload = annotation.to_payload(page_id=page.page_id)
        try:
            res = await self._client.post(page.blocks_url, json=payload)
        except httpx.HTTPError as exc:
            raise RemoteWriteFailure(f"Failed to add block: {exc}") from exc
        if res.is_error:
            raise RemoteWriteFailure(f"Failed to add block: {res.reason_phrase}", status_code=res.status_code)
        try:
            return res.json() if res.content else None
        except ValueError:
            return None

    async def create_blocks(self, page: PageRef, annotations: Sequence[FinalAnnotation]) -> int:
        """
        Create every block in order. Blocks created before a failure stay on the server.
        """

        created = 0
        for annotation in annotations:
            await self.create_block(page, annotation)
            created += 1
        logger.info("Created %d blocks on page %s", created, page.page_id)
        return created
