"""REST fetch middleware.

Resolves root fields by fetching JSON documents over HTTP.

Example:
    def url_for(resource, arguments):
        return f"https://api.example.com/{resource}s/{arguments['id']}"

    fetcher = RestFetcher(url_for, headers={"X-Access-Token": token})
    api.on("query", fetcher)
"""

import asyncio
from collections.abc import Callable
from typing import Any

import httpx

from ..core.pipeline import MiddlewareContext

UrlFor = Callable[[str, dict[str, Any]], str | None]


class RestFetcher:
    """Fetches one JSON document per requested root field.

    Args:
        url_for: Maps ``(field_name, arguments)`` to a URL, or None to leave
            the field to another handler
        client: HTTP client to use; one is created lazily when omitted
        headers: Extra headers sent with every request
        timeout: Request timeout in seconds for the lazily created client
    """

    def __init__(
        self,
        url_for: UrlFor,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ):
        self.url_for = url_for
        self.headers = headers or {}
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json", **self.headers},
            )
        return self._client

    async def close(self):
        """Close the HTTP client if this fetcher created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __call__(self, ctx: MiddlewareContext) -> None:
        client = await self._get_client()
        requests = []
        for field_name, node in ctx.request.items():
            url = self.url_for(field_name, node.arguments)
            if url is not None:
                requests.append((field_name, url))

        async def fetch(field_name: str, url: str):
            response = await client.get(url, headers=self.headers)
            response.raise_for_status()
            ctx.response[field_name] = response.json()

        await asyncio.gather(*(fetch(name, url) for name, url in requests))
