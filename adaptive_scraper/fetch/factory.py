"""Fetcher selection from configuration."""

from __future__ import annotations

from adaptive_scraper.config.settings import ScraperConfig
from adaptive_scraper.fetch.types import Fetcher


def create_fetcher(config: ScraperConfig) -> Fetcher:
    """Build the fetcher selected by `config.fetch.backend`."""
    if config.fetch.backend == "browser":
        from adaptive_scraper.fetch.browser import BrowserFetcher

        return BrowserFetcher(config.browser, config.fetch)

    from adaptive_scraper.fetch.http import HttpFetcher

    return HttpFetcher(config.fetch)
