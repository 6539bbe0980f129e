"""LinkedIn adapter: wires the guest search endpoint, params builder and card parser."""

import logging

from jobmatch.core.config import SearchConfig
from jobmatch.core.schemas import NormalizedJob
from jobmatch.platforms.base import HttpCrawlerAdapter, ScraperError
from jobmatch.platforms.linkedin.parser import JobCard, parse_search_results
from jobmatch.platforms.linkedin.searcher import (
    GUEST_SEARCH_URL,
    build_job_url,
    build_params,
    should_stop_pagination,
)
from jobmatch.platforms.parsing import detect_remote

logger = logging.getLogger(__name__)

EXTRA_PAGES = 2


class LinkedInAdapter(HttpCrawlerAdapter):
    """LinkedIn search over the public guest listing endpoint.

    The first page must succeed; a failing extra page ends pagination but
    keeps the cards already collected.
    """

    extra_pages: int = EXTRA_PAGES

    @property
    def source(self) -> str:
        return "linkedin"

    async def scrape(self, config: SearchConfig) -> list[NormalizedJob]:
        query = self.build_search_query(config)
        location = self.primary_location(config)

        first = await self._fetch_page(query, location, config, 0)
        cards = list(first)

        if not should_stop_pagination(len(first)):
            for page_num in range(1, self.extra_pages + 1):
                await self.random_delay()
                try:
                    page_cards = await self._fetch_page(query, location, config, page_num)
                except ScraperError as exc:
                    logger.warning("[%s] Page %d failed, stopping: %s", self.source, page_num, exc)
                    break
                cards.extend(page_cards)
                if should_stop_pagination(len(page_cards)):
                    break

        jobs = self._to_jobs(cards)
        logger.info("[%s] Found %d jobs", self.source, len(jobs))
        return jobs

    async def _fetch_page(
        self, query: str, location: str, config: SearchConfig, page_num: int,
    ) -> list[JobCard]:
        response = await self.fetch(
            GUEST_SEARCH_URL, params=build_params(query, location, config, page_num),
        )
        cards = parse_search_results(response.text)
        logger.debug("[%s] Page %d: %d cards", self.source, page_num, len(cards))
        return cards

    def _to_jobs(self, cards: list[JobCard]) -> list[NormalizedJob]:
        jobs: list[NormalizedJob] = []
        seen: set[str] = set()
        for card in cards:
            if card.job_id in seen:
                continue
            seen.add(card.job_id)
            jobs.append(self.normalize_job(
                external_id=card.job_id,
                source_url=build_job_url(card.job_id),
                title=card.title,
                company=card.company or "Unknown Company",
                location=card.location or None,
                is_remote=detect_remote(f"{card.title} {card.location}"),
                posted_date=card.posted_date,
                company_logo_url=card.company_logo,
            ))
        return jobs

    async def test_connection(self) -> bool:
        try:
            await self.fetch(
                GUEST_SEARCH_URL,
                params={"keywords": "software engineer", "location": "", "start": "0"},
            )
        except ScraperError as exc:
            logger.warning("[%s] Connection test failed: %s", self.source, exc)
            return False
        return True
