"""Crawler adapter contract and the shared HTTP adapter base."""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Any

import httpx

from jobmatch.core.config import HttpConfig, SearchConfig
from jobmatch.core.schemas import NormalizedJob
from jobmatch.platforms.parsing import clean_text
from jobmatch.platforms.retry import RetryableError, parse_retry_after, retry_async

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class ScraperError(Exception):
    """An adapter could not produce results for this run."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CrawlerAdapter(ABC):
    """Base class that every source adapter must implement.

    The orchestrator only uses `source`, `enabled`, scrape() and
    test_connection(); any exception from scrape() counts as a failed run.
    """

    enabled: bool = True

    @property
    @abstractmethod
    def source(self) -> str:
        """Unique lowercase identifier for this source (e.g. 'indeed')."""

    @abstractmethod
    async def scrape(self, config: SearchConfig) -> list[NormalizedJob]:
        """Fetch postings matching the config, normalized."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the source is reachable."""


class HttpCrawlerAdapter(CrawlerAdapter):
    """Adapter base with retrying HTTP fetches over a shared httpx client.

    Subclasses implement scrape() and may override test_connection().
    Pass `client` to inject a transport (e.g. httpx.MockTransport in tests).
    """

    def __init__(
        self,
        http: HttpConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._http = http or HttpConfig()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._http.timeout_s,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET with retry on transport errors, timeouts, 429 and 5xx.

        Raises ScraperError when attempts are exhausted or on any other
        non-success status.
        """
        request_headers = {
            "User-Agent": random.choice(USER_AGENTS),
            **DEFAULT_HEADERS,
            **(headers or {}),
        }

        @retry_async(
            max_attempts=self._http.retry_count,
            base_delay=self._http.retry_delay_s,
        )
        async def _attempt() -> httpx.Response:
            try:
                response = await self.client.get(url, params=params, headers=request_headers)
            except httpx.TimeoutException as exc:
                raise RetryableError("Request timeout") from exc
            except httpx.TransportError as exc:
                raise RetryableError(f"Transport error: {exc}") from exc

            if response.status_code == 429:
                raise RetryableError(
                    "Rate limited (429)",
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                )
            if response.status_code >= 500:
                raise RetryableError(f"Server error: {response.status_code}")
            if response.status_code >= 400:
                raise ScraperError(
                    f"Request failed: {response.status_code}",
                    status_code=response.status_code,
                )
            return response

        logger.debug("[%s] GET %s %s", self.source, url, params or {})
        try:
            return await _attempt()
        except RetryableError as exc:
            raise ScraperError(f"{exc} after {self._http.retry_count} attempts") from exc

    async def random_delay(self) -> float:
        """Sleep a random interval between requests. Returns the delay."""
        delay = random.uniform(self._http.min_request_delay_s, self._http.max_request_delay_s)
        await asyncio.sleep(delay)
        return delay

    @staticmethod
    def build_search_query(config: SearchConfig) -> str:
        return " ".join(k for k in config.keywords if k)

    @staticmethod
    def primary_location(config: SearchConfig) -> str:
        if config.location:
            return config.location
        return config.locations[0] if config.locations else ""

    def normalize_job(self, **fields: Any) -> NormalizedJob:
        """Build a NormalizedJob for this source with whitespace-cleaned text."""
        for key in ("title", "company", "location", "description", "requirements"):
            value = fields.get(key)
            if value is not None:
                fields[key] = clean_text(value) or None
        fields["title"] = fields.get("title") or ""
        fields["company"] = fields.get("company") or ""
        return NormalizedJob(source=self.source, **fields)
