"""Streaming HTTP reader for the install feed."""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

import httpx

from install_analytics.core.exceptions import NetworkError

logger = logging.getLogger(__name__)

REDACTED = "***"


class FeedFetcher:
    """Opens a streaming GET against the install feed.

    The response body is exposed chunk by chunk and never buffered whole.
    Transport failures, timeouts and non-2xx statuses surface as NetworkError,
    both when opening the stream and while reading it.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self._api_token = api_token
        self._timeout = timeout
        self._client = client

    @property
    def request_url(self) -> str:
        return f"{self.base_url}key={self._api_token}"

    @property
    def display_url(self) -> str:
        """Request URL safe for logs."""
        return f"{self.base_url}key={REDACTED}"

    @asynccontextmanager
    async def open(self) -> AsyncGenerator[AsyncIterator[bytes], None]:
        """Open the feed and yield an async iterator over body chunks.

        Usage:
            async with fetcher.open() as chunks:
                async for chunk in chunks:
                    ...
        """
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        owns_client = self._client is None
        try:
            async with client.stream("GET", self.request_url) as response:
                if not response.is_success:
                    raise NetworkError(
                        f"Install feed answered with status {response.status_code}",
                        details={"url": self.display_url, "status_code": response.status_code},
                    )
                logger.info(f"Streaming install feed from {self.display_url}")
                yield self._iter_chunks(response)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(
                f"Could not reach install feed: {e.__class__.__name__}",
                details={"url": self.display_url},
            ) from e
        finally:
            if owns_client:
                await client.aclose()

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Install feed stream interrupted: {e.__class__.__name__}",
                details={"url": self.display_url},
            ) from e
