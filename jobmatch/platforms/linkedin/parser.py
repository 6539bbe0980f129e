"""Parse LinkedIn guest search result HTML into jobs.

Parsing is regex-based over the HTML fragment the guest endpoint returns;
see selectors.py for the patterns.
"""

import logging
import re
from datetime import datetime
from urllib.parse import urlparse, urlunparse

from pydantic import BaseModel

from jobmatch.platforms.linkedin.selectors import (
    CARD_MARKERS,
    CARD_PATTERN,
    COMPANY_PATTERNS,
    JOB_ID_PATTERN,
    LOCATION_PATTERNS,
    LOGO_PATTERNS,
    POSTED_DATE_PATTERN,
    TITLE_PATTERNS,
    URL_PATTERNS,
)
from jobmatch.platforms.parsing import strip_html

logger = logging.getLogger(__name__)


class JobCard(BaseModel):
    """Fields lifted from one search result card."""

    job_id: str
    title: str
    url: str
    company: str = ""
    location: str = ""
    posted_date: datetime | None = None
    company_logo: str | None = None


def _first_match(patterns: tuple[re.Pattern[str], ...], html: str) -> str:
    for pattern in patterns:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return ""


def _clean_url(url: str) -> str:
    """Drop query string and fragment, make relative URLs absolute."""
    if url.startswith("/"):
        url = f"https://www.linkedin.com{url}"
    parsed = urlparse(url)
    return urlunparse(parsed._replace(query="", fragment=""))


def extract_job_id(url: str) -> str | None:
    match = JOB_ID_PATTERN.search(url)
    return match.group(1) if match else None


def _parse_datetime(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def parse_card(html: str) -> JobCard | None:
    """Parse one card. Returns None if it lacks a title or job link."""
    title = strip_html(_first_match(TITLE_PATTERNS, html))
    url = _first_match(URL_PATTERNS, html)
    if not title or not url:
        return None

    url = _clean_url(url)
    job_id = extract_job_id(url)
    if job_id is None:
        logger.debug("Could not extract job ID from %s", url)
        return None

    return JobCard(
        job_id=job_id,
        title=title,
        url=url,
        company=strip_html(_first_match(COMPANY_PATTERNS, html)),
        location=strip_html(_first_match(LOCATION_PATTERNS, html)),
        posted_date=_parse_datetime(_first_match((POSTED_DATE_PATTERN,), html)),
        company_logo=_first_match(LOGO_PATTERNS, html) or None,
    )


def parse_search_results(html: str) -> list[JobCard]:
    """Parse every job card in a results page, skipping malformed ones."""
    cards: list[JobCard] = []
    for match in CARD_PATTERN.finditer(html):
        fragment = match.group(1)
        if not any(marker in fragment for marker in CARD_MARKERS):
            continue
        card = parse_card(fragment)
        if card is not None:
            cards.append(card)
    return cards
