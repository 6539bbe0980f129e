"""Indeed adapter: reads the public RSS search feed."""

import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime
from email.utils import parsedate_to_datetime
from urllib.parse import parse_qs, urlparse

from jobmatch.core.config import SearchConfig
from jobmatch.core.schemas import NormalizedJob
from jobmatch.platforms.base import HttpCrawlerAdapter, ScraperError
from jobmatch.platforms.parsing import (
    ExperienceRange,
    SalaryRange,
    detect_remote,
    extract_skills,
    generate_external_id,
    parse_experience,
    parse_salary,
    strip_html,
)

logger = logging.getLogger(__name__)

RSS_URL = "https://www.indeed.com/rss"
RSS_ACCEPT = "application/rss+xml, application/xml, text/xml"
MAX_RESULTS = 50

_COMPANY_PREFIX = re.compile(r"^([^-–]+)[-–]")
_LOCATION_PATTERNS = (
    re.compile(r"\b(?:in|at)\s+([A-Za-z][A-Za-z\s]*,\s*[A-Za-z]{2,})"),
    re.compile(r"([A-Za-z]+,\s*[A-Z]{2})\b"),
)
_SALARY_HINTS = (
    re.compile(
        r"[$₹€£]\s?\d[\d,]*(?:\.\d+)?\s*k?"
        r"(?:\s*(?:-|–|to)\s*[$₹€£]?\s?\d[\d,]*(?:\.\d+)?\s*k?)?\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b\d+(?:\.\d+)?(?:\s*(?:-|–|to)\s*\d+(?:\.\d+)?)?\s*(?:lpa|lakhs?|lacs?)\b",
        re.IGNORECASE,
    ),
)
_EXPERIENCE_HINT = re.compile(
    r"\b\d+\s*(?:(?:-|–|to)\s*\d+\s*|\+\s*)?(?:years?|yrs?)\b", re.IGNORECASE,
)


def extract_job_id(link: str) -> str:
    """Job key from the `jk` query parameter, else a hash of the link."""
    jk = parse_qs(urlparse(link).query).get("jk")
    if jk and jk[0]:
        return jk[0]
    return generate_external_id(link)


def _parse_pub_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _company_from_description(text: str) -> str:
    match = _COMPANY_PREFIX.match(text)
    return match.group(1).strip() if match else ""


def _location_from_description(text: str) -> str:
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return ""


def _salary_from_description(text: str) -> SalaryRange:
    for pattern in _SALARY_HINTS:
        match = pattern.search(text)
        if match:
            return parse_salary(match.group(0))
    return SalaryRange()


def _experience_from_description(text: str) -> ExperienceRange:
    match = _EXPERIENCE_HINT.search(text)
    return parse_experience(match.group(0)) if match else ExperienceRange()


class IndeedAdapter(HttpCrawlerAdapter):
    """Indeed search via RSS, which is steadier than the HTML result pages."""

    @property
    def source(self) -> str:
        return "indeed"

    async def scrape(self, config: SearchConfig) -> list[NormalizedJob]:
        params = {
            "q": self.build_search_query(config),
            "l": self.primary_location(config),
            "sort": "date",
            "limit": str(MAX_RESULTS),
        }
        response = await self.fetch(RSS_URL, params=params, headers={"Accept": RSS_ACCEPT})
        jobs = self.parse_feed(response.text)
        logger.info("[%s] Found %d jobs", self.source, len(jobs))
        return jobs

    def parse_feed(self, xml_text: str) -> list[NormalizedJob]:
        """Parse RSS items into jobs. Items without title or link are skipped."""
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as exc:
            msg = f"Invalid RSS feed: {exc}"
            raise ScraperError(msg) from exc

        jobs: list[NormalizedJob] = []
        for item in root.iter("item"):
            title = (item.findtext("title") or "").strip()
            link = (item.findtext("link") or "").strip()
            if not title or not link:
                continue

            description = strip_html(item.findtext("description"))
            company = (item.findtext("source") or "").strip() or _company_from_description(description)
            location = _location_from_description(description)
            salary = _salary_from_description(description)
            experience = _experience_from_description(description)

            jobs.append(self.normalize_job(
                external_id=extract_job_id(link),
                source_url=link,
                title=title,
                company=company or "Unknown Company",
                location=location or None,
                is_remote=detect_remote(f"{title} {location} {description}"),
                description=description or None,
                skills_required=", ".join(extract_skills(description)) or None,
                salary_min=salary.min,
                salary_max=salary.max,
                salary_currency=salary.currency,
                experience_min=experience.min,
                experience_max=experience.max,
                posted_date=_parse_pub_date((item.findtext("pubDate") or "").strip()),
            ))
        return jobs

    async def test_connection(self) -> bool:
        try:
            await self.fetch(
                RSS_URL,
                params={"q": "software engineer", "l": "", "limit": "1"},
                headers={"Accept": RSS_ACCEPT},
            )
        except ScraperError as exc:
            logger.warning("[%s] Connection test failed: %s", self.source, exc)
            return False
        return True
