"""Regex patterns for LinkedIn guest search result cards.

Each field has a fallback tuple tried in order; the first match wins.
LinkedIn changes class names without notice, so update these tuples rather
than the parser logic.
"""

import re

_FLAGS = re.IGNORECASE | re.DOTALL

CARD_PATTERN = re.compile(r"<li[^>]*>(.*?)</li>", _FLAGS)

CARD_MARKERS: tuple[str, ...] = ("base-card", "job-card", "job-search-card")

TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'<h3[^>]*class="[^"]*base-search-card__title[^"]*"[^>]*>(.*?)</h3>', _FLAGS),
    re.compile(r'<span[^>]*class="[^"]*job-card-list__title[^"]*"[^>]*>(.*?)</span>', _FLAGS),
)

URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'href="([^"]*linkedin\.com/jobs/view/[^"]+)"', _FLAGS),
    re.compile(r'href="(/jobs/view/[^"]+)"', _FLAGS),
)

COMPANY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r'<h4[^>]*class="[^"]*base-search-card__subtitle[^"]*"[^>]*>.*?<a[^>]*>(.*?)</a>',
        _FLAGS,
    ),
    re.compile(r'<h4[^>]*class="[^"]*base-search-card__subtitle[^"]*"[^>]*>(.*?)</h4>', _FLAGS),
    re.compile(
        r'<span[^>]*class="[^"]*job-card-container__primary-description[^"]*"[^>]*>(.*?)</span>',
        _FLAGS,
    ),
)

LOCATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'<span[^>]*class="[^"]*job-search-card__location[^"]*"[^>]*>(.*?)</span>', _FLAGS),
    re.compile(
        r'<span[^>]*class="[^"]*job-card-container__metadata-item[^"]*"[^>]*>(.*?)</span>',
        _FLAGS,
    ),
)

POSTED_DATE_PATTERN = re.compile(r'<time[^>]*datetime="([^"]+)"', _FLAGS)

LOGO_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'<img[^>]*data-delayed-url="([^"]+)"', _FLAGS),
    re.compile(r'<img[^>]*src="([^"]+)"[^>]*class="[^"]*artdeco-entity-image[^"]*"', _FLAGS),
)

# /jobs/view/123 or /jobs/view/senior-python-engineer-at-acme-123; the ID ends the segment
JOB_ID_PATTERN = re.compile(r"/jobs/view/(?:[^/?\"#]*-)?(\d+)(?=[/?\"#]|$)")
