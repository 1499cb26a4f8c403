"""GitHub API pagination utilities."""

import re
from collections.abc import AsyncIterator, Mapping
from typing import Any

_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


class LinkHeader:
    """Parser for GitHub Link headers."""

    def __init__(self, link_header: str | None = None):
        """Initialize Link header parser.

        Args:
            link_header: Raw Link header value from response
        """
        self.links: dict[str, str] = {}
        if link_header:
            # Link header format: <url>; rel="next", <url>; rel="last"
            for match in _LINK_PATTERN.finditer(link_header):
                url, rel = match.groups()
                self.links[rel] = url

    @property
    def next_url(self) -> str | None:
        """Get URL for next page."""
        return self.links.get("next")

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return "next" in self.links


class PaginatedResponse:
    """One page of a GitHub list or search response."""

    def __init__(
        self,
        data: Any,
        headers: Mapping[str, str],
        url: str,
        items_key: str | None = None,
    ):
        """Initialize paginated response.

        Args:
            data: Decoded JSON body
            headers: Response headers
            url: Request URL
            items_key: Key holding the items when the body is an object
                (``items`` for search, ``check_runs`` for checks)
        """
        self.data = data
        self.headers = headers
        self.url = url
        self.items_key = items_key
        self.link_header = LinkHeader(headers.get("Link"))

    @property
    def has_next_page(self) -> bool:
        """Check if there's a next page."""
        return self.link_header.has_next

    @property
    def next_page_url(self) -> str | None:
        """Get URL for next page."""
        return self.link_header.next_url

    @property
    def items(self) -> list[dict[str, Any]]:
        """Get items from current page."""
        if isinstance(self.data, list):
            return self.data
        if self.items_key and isinstance(self.data, dict):
            return list(self.data.get(self.items_key) or [])
        return []


class AsyncPaginator:
    """Async iterator over the items of a paginated GitHub endpoint."""

    def __init__(
        self,
        client: Any,  # Avoid circular import
        initial_url: str,
        params: dict[str, Any] | None = None,
        max_pages: int | None = None,
        per_page: int = 100,
        items_key: str | None = None,
        resource: str = "core",
    ):
        """Initialize async paginator.

        Args:
            client: GitHub client instance
            initial_url: Initial URL to fetch
            params: Query parameters for the first request
            max_pages: Maximum number of pages to fetch
            per_page: Items per page (max 100 for GitHub)
            items_key: Key holding items in object responses
            resource: Rate limit resource the endpoint counts against
        """
        self.client = client
        self.initial_url = initial_url
        self.params = dict(params or {})
        self.max_pages = max_pages
        self.per_page = min(per_page, 100)
        self.items_key = items_key
        self.resource = resource

        self.params["per_page"] = self.per_page

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        """Yield items page by page, following Link headers."""
        next_url: str | None = self.initial_url
        # Link URLs already carry the query string
        params: dict[str, Any] | None = self.params
        pages = 0

        while next_url:
            if self.max_pages and pages >= self.max_pages:
                break

            response: PaginatedResponse = await self.client._fetch_paginated(
                next_url, params, items_key=self.items_key, resource=self.resource
            )
            pages += 1
            params = None
            next_url = response.next_page_url if response.has_next_page else None

            for item in response.items:
                yield item

    async def collect_all(self) -> list[dict[str, Any]]:
        """Collect all items from all pages.

        Returns:
            List of all items
        """
        return [item async for item in self]
