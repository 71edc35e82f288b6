"""Shared fixtures: an in-process fetcher serving canned pages."""

from __future__ import annotations

import asyncio

import pytest

from adaptive_scraper.fetch.types import FetchedPage, FetchError, classify_status


class FakeFetcher:
    """Serves HTML from a dict; status codes >= 400 become FetchErrors."""

    def __init__(self) -> None:
        self.pages: dict[str, str] = {}
        self.statuses: dict[str, int] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def fetch(self, url: str) -> FetchedPage:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if url in self.delays:
                await asyncio.sleep(self.delays[url])
            status = self.statuses.get(url, 200 if url in self.pages else 404)
            if status >= 400:
                raise FetchError(url, classify_status(status), status_code=status)
            return FetchedPage(html=self.pages[url], url=url, status_code=status)
        finally:
            self.active -= 1


@pytest.fixture
def fetcher():
    return FakeFetcher()
