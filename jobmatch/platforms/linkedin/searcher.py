"""LinkedIn guest search parameters and pagination helpers.

Pure functions, no network.
"""

from jobmatch.core.config import SearchConfig

GUEST_SEARCH_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
RESULTS_PER_PAGE = 25
REMOTE_WORKPLACE_CODE = "2"


def build_params(query: str, location: str, config: SearchConfig, page: int = 0) -> dict[str, str]:
    """Query parameters for one page of guest search results (newest first)."""
    params: dict[str, str] = {
        "keywords": query,
        "location": location,
        "start": str(page * RESULTS_PER_PAGE),
        "sortBy": "DD",
    }
    if config.remote:
        params["f_WT"] = REMOTE_WORKPLACE_CODE
    return params


def should_stop_pagination(cards_found: int) -> bool:
    """A short page means there are no further results."""
    return cards_found < RESULTS_PER_PAGE


def build_job_url(job_id: str) -> str:
    """Canonical LinkedIn job detail URL."""
    return f"https://www.linkedin.com/jobs/view/{job_id}/"
