"""Browser fetcher — Playwright-based headless browser page retrieval.

Loads a page in an isolated context and returns its DOM as served once the
document is parsed. It does not wait for client-side rendering.
"""

from __future__ import annotations

import logging
from typing import Any

from playwright.async_api import Browser, BrowserContext, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from adaptive_scraper.config.settings import BrowserConfig, FetchConfig
from adaptive_scraper.fetch.types import FetchedPage, FetchError, FetchErrorKind, classify_status
from adaptive_scraper.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class BrowserFetcher:
    """Playwright-based fetcher.

    Contract:
    - One browser and one context per fetcher, one page per fetch so that
      concurrent fetches never share a tab
    - Returns FetchedPage on success, raises FetchError otherwise
    """

    def __init__(
        self, config: BrowserConfig | None = None, fetch_config: FetchConfig | None = None
    ) -> None:
        self._config = config or BrowserConfig()
        self._fetch_config = fetch_config or FetchConfig()
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def start(self) -> None:
        """Launch browser and create an isolated context."""
        if self._context is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._config.headless,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            user_agent=self._config.user_agent or self._fetch_config.user_agent,
            locale=self._config.locale,
            extra_http_headers=self._fetch_config.headers or None,
        )

    async def stop(self) -> None:
        """Clean up browser resources."""
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def fetch(self, url: str) -> FetchedPage:
        """Navigate to a URL and return the loaded document.

        Raises:
            FetchError: on navigation timeouts, browser errors and HTTP error
                statuses.
        """
        if self._context is None:
            await self.start()

        page = await self._context.new_page()
        try:
            timeout_ms = self._fetch_config.timeout_s * 1000
            try:
                response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            except PlaywrightTimeoutError as e:
                raise FetchError(url, FetchErrorKind.TRANSIENT, detail=f"Timeout: {e}") from e
            except PlaywrightError as e:
                raise FetchError(url, FetchErrorKind.TRANSIENT, detail=str(e)) from e

            if response is None:
                raise FetchError(url, FetchErrorKind.TRANSIENT, detail="No response received")
            if response.status >= 400:
                raise FetchError(
                    url,
                    classify_status(response.status),
                    status_code=response.status,
                    detail="Invalid response status",
                )

            html = await page.content()
            return FetchedPage(html=html, url=page.url, status_code=response.status)
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                emit_structured_error(
                    logger,
                    code=ErrorCode.BROWSER_CLEANUP_FAILED,
                    message=str(e),
                    suppressed=True,
                    details={"url": url},
                )
