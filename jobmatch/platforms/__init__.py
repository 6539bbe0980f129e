"""Crawler adapter registry with lazy loading.

Usage:
    from jobmatch.platforms import build_default_adapters

    adapters = build_default_adapters(settings)
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

from jobmatch.platforms.base import CrawlerAdapter, HttpCrawlerAdapter, ScraperError

if TYPE_CHECKING:
    from jobmatch.core.config import Settings

__all__ = [
    "CrawlerAdapter",
    "HttpCrawlerAdapter",
    "ScraperError",
    "available_adapters",
    "build_default_adapters",
    "get_adapter",
]

# Lazy registry: maps source name → (module_path, class_name), in scheduling order
_REGISTRY: dict[str, tuple[str, str]] = {
    "linkedin": ("jobmatch.platforms.linkedin.adapter", "LinkedInAdapter"),
    "indeed": ("jobmatch.platforms.indeed.adapter", "IndeedAdapter"),
}


def get_adapter(name: str, settings: Settings) -> CrawlerAdapter:
    """Instantiate a registered adapter by source name.

    Raises:
        ValueError: If the source name is unknown.
    """
    key = name.lower()
    if key not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown source '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[key]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(http=settings.http)  # type: ignore[no-any-return]


def build_default_adapters(settings: Settings) -> list[CrawlerAdapter]:
    """Every registered adapter, configured from settings.http."""
    return [get_adapter(name, settings) for name in _REGISTRY]


def available_adapters() -> list[str]:
    """Return sorted list of registered source names."""
    return sorted(_REGISTRY)
