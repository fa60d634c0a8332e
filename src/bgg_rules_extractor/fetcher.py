"""
Page fetcher: the only place that reads remote pages.

Requests are sequential. A fixed delay is awaited before every fetch
except the first, so both pagination loops stay polite without having to
sleep themselves. There is no retry here; a failed run is recovered by
running it again.
"""

import asyncio
import logging
from typing import Optional

import httpx

from .config import REQUEST_DELAY, REQUEST_TIMEOUT, USER_AGENT
from .errors import FetchError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}


class PageFetcher:
    """
    Fetch raw markup over HTTP.

    Cookies are never forwarded: the client's jar is cleared before each
    request, so every fetch is anonymous.

    Usage:
        async with PageFetcher() as fetcher:
            html = await fetcher.fetch("https://boardgamegeek.com/boardgame/13")
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        request_delay: float = REQUEST_DELAY,
        request_timeout: float = REQUEST_TIMEOUT,
    ):
        self.request_delay = request_delay
        self.request_timeout = request_timeout
        self.client = client
        self._own_client = client is None
        self.fetch_count = 0

    async def __aenter__(self) -> "PageFetcher":
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=self.request_timeout,
                follow_redirects=True,
                headers=DEFAULT_HEADERS,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._own_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    async def fetch(self, url: str) -> str:
        """
        Fetch a page and return its markup.

        Raises:
            FetchError: the response status is outside 2xx
            NetworkError: the request never got a response, or the URL is unusable
            RuntimeError: called outside ``async with``
        """
        if self.client is None:
            raise RuntimeError("PageFetcher is not open; use it with async with")

        if self.fetch_count > 0 and self.request_delay > 0:
            await asyncio.sleep(self.request_delay)
        self.fetch_count += 1

        self.client.cookies.clear()
        try:
            response = await self.client.get(url, timeout=self.request_timeout)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning("Request error for %s: %s", url, e)
            raise NetworkError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.warning("HTTP %d for %s", response.status_code, url)
            raise FetchError(response.status_code, url)

        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.text
