"""Tests for the httpx fetcher and fetch error classification."""

import httpx
import pytest

from adaptive_scraper.config.settings import FetchConfig
from adaptive_scraper.fetch.http import HttpFetcher
from adaptive_scraper.fetch.types import FetchedPage, FetchError, FetchErrorKind, classify_status


def _fetcher(handler):
    return HttpFetcher(FetchConfig(backend="http"), transport=httpx.MockTransport(handler))


class TestClassifyStatus:
    @pytest.mark.parametrize("status", [400, 401, 403, 404, 410])
    def test_permanent(self, status):
        assert classify_status(status) == FetchErrorKind.PERMANENT

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503])
    def test_transient(self, status):
        assert classify_status(status) == FetchErrorKind.TRANSIENT


class TestFetchedPage:
    def test_hash_and_lazy_root(self):
        page = FetchedPage(html="<html><body><p>a</p></body></html>", url="https://e.com")
        assert page.dom_hash == FetchedPage.compute_hash(page.html)
        assert page.root.xpath("string(//p)") == "a"
        assert page.root is page.root


class TestHttpFetcher:
    @pytest.mark.asyncio
    async def test_success(self):
        def handler(request):
            assert request.headers["User-Agent"] == "adaptive-scraper/1.0"
            return httpx.Response(200, text="<html><body><h1>Widget</h1></body></html>")

        fetcher = _fetcher(handler)
        try:
            page = await fetcher.fetch("https://e.com/1")
        finally:
            await fetcher.stop()

        assert page.status_code == 200
        assert page.url == "https://e.com/1"
        assert page.root.xpath("string(//h1)") == "Widget"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,kind",
        [(404, FetchErrorKind.PERMANENT), (410, FetchErrorKind.PERMANENT), (503, FetchErrorKind.TRANSIENT)],
    )
    async def test_error_status(self, status, kind):
        fetcher = _fetcher(lambda request: httpx.Response(status))
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://e.com/1")
        await fetcher.stop()

        assert exc_info.value.kind == kind
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = _fetcher(handler)
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://e.com/1")
        await fetcher.stop()

        assert not exc_info.value.is_permanent

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = _fetcher(handler)
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://e.com/1")
        await fetcher.stop()

        assert exc_info.value.kind == FetchErrorKind.TRANSIENT
        assert "Timeout" in str(exc_info.value)
