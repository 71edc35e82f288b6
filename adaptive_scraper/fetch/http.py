"""Plain GET fetcher on top of an httpx async client."""

from __future__ import annotations

import logging

import httpx

from adaptive_scraper.config.settings import FetchConfig
from adaptive_scraper.fetch.types import FetchedPage, FetchError, FetchErrorKind, classify_status

logger = logging.getLogger(__name__)


class HttpFetcher:
    """Fetches static HTML. Retry and backoff belong to the caller's transport."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or FetchConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_s),
            follow_redirects=self._config.follow_redirects,
            headers={"User-Agent": self._config.user_agent, **self._config.headers},
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchedPage:
        """GET a page.

        Raises:
            FetchError: on timeouts, connection errors and HTTP error statuses.
        """
        if self._client is None:
            await self.start()

        logger.debug("Requesting %s", url)
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise FetchError(url, FetchErrorKind.TRANSIENT, detail=f"Timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetchError(url, FetchErrorKind.TRANSIENT, detail=f"Request failed: {e}") from e

        if response.status_code >= 400:
            raise FetchError(
                url,
                classify_status(response.status_code),
                status_code=response.status_code,
                detail="Invalid response status",
            )

        return FetchedPage(
            html=response.text,
            url=str(response.url),
            status_code=response.status_code,
        )
