from __future__ import annotations

import re
from dataclasses import dataclass

from yolo_blocks.errors import InvalidPageUrl

_PAGE_URL = re.compile(
    r"^(?P<domain>https?://[^/]+)/documents?/(?P<document>\d+)/parts?/(?P<page>\d+)/edit/?$"
)


@dataclass(frozen=True)
class PageRef:
    domain: str
    document_id: str
    page_id: str

    @property
    def api_root(self) -> str:
        return f"{self.domain}/api"

    @property
    def document_url(self) -> str:
        return f"{self.api_root}/documents/{self.document_id}/"

    @property
    def blocks_url(self) -> str:
        return f"{self.api_root}/documents/{self.document_id}/parts/{self.page_id}/blocks/"

    @property
    def block_types_url(self) -> str:
        return f"{self.api_root}/types/block/"


def parse_page_url(url: str) -> PageRef:
    """
    Split an editor URL like https://host/document/12/part/34/edit/ into its ids.
    """

    match = _PAGE_URL.match(url.strip())
    if match is None:
        raise InvalidPageUrl(url)
    return PageRef(domain=match.group("domain"), document_id=match.group("document"), page_id=match.group("page"))
