"""Fetching the rendered main content of a record's page."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx
from bs4 import BeautifulSoup

from indexsync.models import Record

LOGGER = logging.getLogger(__name__)


class PageCrawler(Protocol):
    def get_main_content(self, record: Record) -> str: ...


class HTTPPageCrawler:
    """Requests a record's page and extracts the inner HTML of its main element."""

    def __init__(
        self,
        base_url: str,
        *,
        content_tag: str = "main",
        link_field: str = "Link",
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url
        self.content_tag = content_tag
        self.link_field = link_field
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def get_main_content(self, record: Record) -> str:
        link = record.get(self.link_field)
        if not link:
            return ""

        response = self._client.get(link)
        response.raise_for_status()
        soup = BeautifulSoup(response.text, "html.parser")

        element = soup.find(self.content_tag)
        if element is None:
            LOGGER.debug("No <%s> element in %s, using the page body", self.content_tag, link)
            element = soup.body or soup
        return element.decode_contents().strip()
