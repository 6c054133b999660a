"""Thin async GitHub REST client used by the fetchers."""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from typing import Any

import httpx

from devlica.ingestion.transport import RateLimitTransport

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"

_NEXT_LINK = re.compile(r'<([^>]+)>;\s*rel="next"')


def _headers(token: str) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def next_page_url(resp: httpx.Response) -> str | None:
    """Return the rel="next" URL from a Link header, if any."""
    link_header = resp.headers.get("Link", "")
    if 'rel="next"' not in link_header:
        return None
    match = _NEXT_LINK.search(link_header)
    return match.group(1) if match else None


class GitHubClient:
    """Authenticated client; every request goes through RateLimitTransport.

    Use as an async context manager so the connection pool is closed.
    """

    def __init__(
        self,
        token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str = API_BASE,
        timeout: float = 30.0,
    ) -> None:
        if not isinstance(transport, RateLimitTransport):
            transport = RateLimitTransport(transport)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=_headers(token),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: str, params: dict | None = None) -> Any:
        """GET one resource and return the decoded JSON body.

        Raises httpx.HTTPStatusError for non-2xx responses.
        """
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()

    async def pages(
        self,
        url: str,
        params: dict | None = None,
        *,
        items_key: str | None = None,
        max_pages: int | None = None,
    ) -> AsyncIterator[list[dict]]:
        """Yield one list of items per page, following Link headers.

        Search endpoints wrap their results in an object; pass items_key="items"
        for those. Callers stop early simply by breaking out of the loop.
        """
        params = dict(params or {})
        params.setdefault("per_page", "100")
        page = 0
        next_url: str | None = url

        while next_url is not None:
            resp = await self._client.get(next_url, params=params or None)
            resp.raise_for_status()

            body = resp.json()
            items = body.get(items_key, []) if items_key and isinstance(body, dict) else body
            if not isinstance(items, list):
                logger.debug("unexpected page payload for %s", url)
                return
            yield items

            page += 1
            if max_pages is not None and page >= max_pages:
                return
            next_url = next_page_url(resp)
            params = {}  # next URL already carries the query
