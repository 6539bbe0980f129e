"""Tests for HttpCrawlerAdapter: retrying fetch, delays, normalization."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from jobmatch.core.config import HttpConfig, SearchConfig
from jobmatch.core.schemas import NormalizedJob
from jobmatch.platforms.base import USER_AGENTS, HttpCrawlerAdapter, ScraperError

Handler = Callable[[httpx.Request], httpx.Response]


class DummyAdapter(HttpCrawlerAdapter):
    @property
    def source(self) -> str:
        return "dummy"

    async def scrape(self, config: SearchConfig) -> list[NormalizedJob]:
        return []

    async def test_connection(self) -> bool:
        return True


def _adapter(handler: Handler, **http: float) -> DummyAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DummyAdapter(http=HttpConfig(**http), client=client)


def _sequence(*responses: httpx.Response | Exception) -> tuple[Handler, list[httpx.Request]]:
    """Handler that returns (or raises) the given items in order."""
    seen: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return handler, seen


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


class TestFetch:
    async def test_success(self) -> None:
        handler, seen = _sequence(httpx.Response(200, text="ok"))
        adapter = _adapter(handler)
        response = await adapter.fetch("https://example.com/search", params={"q": "python"})
        assert response.text == "ok"
        assert seen[0].url.params["q"] == "python"
        assert seen[0].headers["User-Agent"] in USER_AGENTS

    async def test_custom_headers_merged(self) -> None:
        handler, seen = _sequence(httpx.Response(200))
        adapter = _adapter(handler)
        await adapter.fetch("https://example.com", headers={"Accept": "application/xml"})
        assert seen[0].headers["Accept"] == "application/xml"
        assert seen[0].headers["Accept-Language"] == "en-US,en;q=0.9"

    async def test_retries_server_error(self) -> None:
        handler, seen = _sequence(httpx.Response(503), httpx.Response(200, text="ok"))
        adapter = _adapter(handler)
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            response = await adapter.fetch("https://example.com")
        assert response.text == "ok"
        assert len(seen) == 2

    async def test_retries_timeout(self) -> None:
        handler, seen = _sequence(httpx.ReadTimeout("slow"), httpx.Response(200))
        adapter = _adapter(handler)
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            await adapter.fetch("https://example.com")
        assert len(seen) == 2

    async def test_retries_connection_error(self) -> None:
        handler, seen = _sequence(httpx.ConnectError("refused"), httpx.Response(200))
        adapter = _adapter(handler)
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            await adapter.fetch("https://example.com")
        assert len(seen) == 2

    async def test_rate_limit_honours_retry_after(self) -> None:
        handler, _ = _sequence(
            httpx.Response(429, headers={"Retry-After": "12"}),
            httpx.Response(200),
        )
        adapter = _adapter(handler)
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            await adapter.fetch("https://example.com")
        mock_sleep.assert_awaited_once_with(12.0)

    async def test_exhausted_raises_scraper_error(self) -> None:
        handler, seen = _sequence(*(httpx.Response(500) for _ in range(3)))
        adapter = _adapter(handler, retry_count=3)
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            with pytest.raises(ScraperError, match="after 3 attempts"):
                await adapter.fetch("https://example.com")
        assert len(seen) == 3

    async def test_client_error_not_retried(self) -> None:
        handler, seen = _sequence(httpx.Response(403))
        adapter = _adapter(handler)
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ScraperError) as exc_info:
                await adapter.fetch("https://example.com")
        assert exc_info.value.status_code == 403
        assert len(seen) == 1
        mock_sleep.assert_not_awaited()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    async def test_random_delay_in_range(self) -> None:
        adapter = DummyAdapter(http=HttpConfig(min_request_delay_s=2, max_request_delay_s=5))
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            delay = await adapter.random_delay()
        assert 2 <= delay <= 5
        mock_sleep.assert_awaited_once_with(delay)

    def test_build_search_query(self) -> None:
        config = SearchConfig(keywords=["Python", "Django"])
        assert HttpCrawlerAdapter.build_search_query(config) == "Python Django"

    def test_primary_location(self) -> None:
        assert HttpCrawlerAdapter.primary_location(SearchConfig(location="Pune")) == "Pune"
        assert HttpCrawlerAdapter.primary_location(SearchConfig(locations=["Delhi"])) == "Delhi"
        assert HttpCrawlerAdapter.primary_location(SearchConfig()) == ""

    def test_normalize_job(self) -> None:
        job = DummyAdapter().normalize_job(
            external_id="1",
            title="  Senior\n  Engineer ",
            company=None,
            location="   ",
        )
        assert job.source == "dummy"
        assert job.title == "Senior Engineer"
        assert job.company == ""
        assert job.location is None

    async def test_aclose_resets_client(self) -> None:
        adapter = DummyAdapter()
        client = adapter.client
        assert adapter.client is client
        await adapter.aclose()
        assert client.is_closed
