"""Text heuristics shared by crawler adapters.

All helpers are total: unparseable input yields empty/None values, never an
exception.
"""

import hashlib
import re
from html import unescape

from pydantic import BaseModel

_WHITESPACE = re.compile(r"\s+")
_TAG = re.compile(r"<[^>]+>")

_REMOTE_MARKERS = ("remote", "work from home", "wfh", "anywhere")

_SKILL_PATTERNS: list[re.Pattern[str]] = [
    # Languages
    re.compile(
        r"\b(javascript|typescript|python|java|c\+\+|c#|ruby|go|golang|rust|php|swift|"
        r"kotlin|scala|perl)\b",
        re.IGNORECASE,
    ),
    # Frameworks
    re.compile(
        r"\b(react|angular|vue|next\.?js|node\.?js|express|django|flask|spring|rails|"
        r"laravel|asp\.net|fastapi)\b",
        re.IGNORECASE,
    ),
    # Databases
    re.compile(
        r"\b(mysql|postgresql|mongodb|redis|elasticsearch|oracle|sql server|dynamodb|"
        r"cassandra|firebase)\b",
        re.IGNORECASE,
    ),
    # Cloud and tooling
    re.compile(
        r"\b(aws|azure|gcp|google cloud|kubernetes|docker|terraform|jenkins|ci/cd)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(git|linux|rest|graphql|microservices|agile|scrum|devops|machine learning|"
        r"data science)\b",
        re.IGNORECASE,
    ),
]

# (marker substrings, (min, max)) for seniority words without numbers.
_LEVELS: list[tuple[tuple[str, ...], tuple[float | None, float | None]]] = [
    (("entry", "junior", "fresher"), (0, 2)),
    (("mid", "intermediate"), (3, 5)),
    (("senior", "lead"), (5, 10)),
    (("principal", "staff", "architect"), (8, None)),
]


class SalaryRange(BaseModel):
    min: float | None = None
    max: float | None = None
    currency: str | None = None


class ExperienceRange(BaseModel):
    min: float | None = None
    max: float | None = None


def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def strip_html(html: str | None) -> str:
    """Remove tags, decode entities, collapse whitespace."""
    if not html:
        return ""
    return clean_text(unescape(_TAG.sub(" ", html)))


def detect_remote(text: str | None) -> bool:
    if not text:
        return False
    lower = text.lower()
    return any(marker in lower for marker in _REMOTE_MARKERS)


def extract_skills(text: str | None) -> list[str]:
    """Return recognised technology names, deduplicated and lowercased.

    Order follows the pattern groups (languages, frameworks, databases, ...).
    """
    if not text:
        return []
    found: dict[str, None] = {}
    for pattern in _SKILL_PATTERNS:
        for match in pattern.findall(text):
            found.setdefault(match.lower(), None)
    return list(found)


def parse_salary(text: str | None) -> SalaryRange:
    """Parse strings like "$50k-$70k", "50,000 - 70,000" or "10 LPA"."""
    if not text:
        return SalaryRange()

    lower = text.lower().replace(",", "")
    currency = None
    if "$" in lower or "usd" in lower:
        currency = "USD"
    elif "₹" in lower or "inr" in lower:
        currency = "INR"
    elif "€" in lower or "eur" in lower:
        currency = "EUR"
    elif "£" in lower or "gbp" in lower:
        currency = "GBP"

    numbers = [float(n) for n in re.findall(r"\d+(?:\.\d+)?", lower)]

    if "lpa" in lower or "lakh" in lower or "lac" in lower:
        multiplier = 100_000
    elif re.search(r"\d\s*k\b", lower):
        multiplier = 1_000
    else:
        multiplier = 1

    if len(numbers) >= 2:
        return SalaryRange(
            min=round(numbers[0] * multiplier),
            max=round(numbers[1] * multiplier),
            currency=currency,
        )
    if len(numbers) == 1:
        value = round(numbers[0] * multiplier)
        return SalaryRange(min=value, max=value, currency=currency)
    return SalaryRange(currency=currency)


def parse_experience(text: str | None) -> ExperienceRange:
    """Parse strings like "3-5 years", "5+ years", "2 yrs" or "Senior"."""
    if not text:
        return ExperienceRange()

    lower = text.lower()

    range_match = re.search(r"(\d+)\s*(?:-|–|to)\s*(\d+)", lower)
    if range_match:
        return ExperienceRange(min=int(range_match.group(1)), max=int(range_match.group(2)))

    plus_match = re.search(r"(\d+)\s*\+", lower)
    if plus_match:
        return ExperienceRange(min=int(plus_match.group(1)))

    single_match = re.search(r"(\d+)\s*(?:year|yr)", lower)
    if single_match:
        years = int(single_match.group(1))
        return ExperienceRange(min=years, max=years)

    for markers, (low, high) in _LEVELS:
        if any(m in lower for m in markers):
            return ExperienceRange(min=low, max=high)

    return ExperienceRange()


def generate_external_id(*parts: str | None) -> str:
    """Stable short ID for postings whose source exposes none."""
    combined = "-".join(p or "" for p in parts)
    return hashlib.sha256(combined.encode()).hexdigest()[:16]
