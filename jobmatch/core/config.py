"""Configuration models and YAML loader for the job match engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_KEYWORDS = ["software engineer"]


class SearchConfig(BaseModel):
    """Search parameters handed to every crawler adapter for one run.

    Frozen: overrides produce a new instance via with_overrides().
    """

    model_config = ConfigDict(frozen=True)

    keywords: list[str] = Field(default_factory=list)
    location: str | None = None
    locations: list[str] = Field(default_factory=list)
    remote: bool | None = None
    experience_years: float | None = None
    salary_min: float | None = None
    salary_currency: str = "INR"

    @field_validator("keywords", "locations")
    @classmethod
    def drop_blank(cls, v: list[str]) -> list[str]:
        return [item.strip() for item in v if item and item.strip()]

    def with_overrides(self, overrides: "ScrapeOverrides | None") -> "SearchConfig":
        """Return a copy where every field set on the overrides wins."""
        if overrides is None:
            return self
        data = self.model_dump()
        data.update(overrides.model_dump(exclude_unset=True))
        return SearchConfig.model_validate(data)


class ScrapeOverrides(BaseModel):
    """Caller-supplied partial search parameters.

    Only fields explicitly set are applied; unset fields keep the
    profile-derived value. Unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    keywords: list[str] | None = None
    location: str | None = None
    locations: list[str] | None = None
    remote: bool | None = None
    experience_years: float | None = None
    salary_min: float | None = None
    salary_currency: str | None = None

    @field_validator("keywords")
    @classmethod
    def keywords_not_empty(cls, v: list[str] | None) -> list[str] | None:
        if v is not None and not [k for k in v if k.strip()]:
            msg = "keywords override must contain at least one keyword"
            raise ValueError(msg)
        return v


class ScraperSettings(BaseModel):
    """Orchestration limits and circuit-breaker thresholds."""

    max_concurrency: int = Field(default=3, ge=1, le=10)
    max_consecutive_failures: int = Field(default=3, ge=1)
    block_duration_hours: float = Field(default=24.0, gt=0)
    disabled_sources: list[str] = Field(default_factory=list)
    score_limit: int = Field(default=50, ge=1)

    @field_validator("disabled_sources")
    @classmethod
    def lowercase_sources(cls, v: list[str]) -> list[str]:
        return [s.lower().strip() for s in v if s.strip()]


class HttpConfig(BaseModel):
    """Request behaviour shared by HTTP crawler adapters."""

    timeout_s: float = Field(default=30.0, gt=0)
    retry_count: int = Field(default=3, ge=1, le=10)
    retry_delay_s: float = Field(default=5.0, ge=0)
    min_request_delay_s: float = Field(default=2.0, ge=0)
    max_request_delay_s: float = Field(default=5.0, ge=0)

    @model_validator(mode="after")
    def delay_range_ordered(self) -> "HttpConfig":
        if self.max_request_delay_s < self.min_request_delay_s:
            msg = "max_request_delay_s must be >= min_request_delay_s"
            raise ValueError(msg)
        return self


class ScoringConfig(BaseModel):
    """Component weights for the job fit score."""

    semantic_weight: float = Field(default=0.30, ge=0.0, le=1.0)
    skills_weight: float = Field(default=0.30, ge=0.0, le=1.0)
    experience_weight: float = Field(default=0.20, ge=0.0, le=1.0)
    salary_weight: float = Field(default=0.10, ge=0.0, le=1.0)
    location_weight: float = Field(default=0.10, ge=0.0, le=1.0)
    default_semantic_score: float = Field(default=70.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "ScoringConfig":
        total = (
            self.semantic_weight
            + self.skills_weight
            + self.experience_weight
            + self.salary_weight
            + self.location_weight
        )
        if abs(total - 1.0) > 1e-6:
            msg = f"scoring weights must sum to 1.0 (got {total:.3f})"
            raise ValueError(msg)
        return self


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/jobs.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    user_id: str = "default"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scrapers: ScraperSettings = Field(default_factory=ScraperSettings)
    http: HttpConfig = Field(default_factory=HttpConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    @field_validator("user_id")
    @classmethod
    def user_id_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "user_id must not be empty"
            raise ValueError(msg)
        return v.strip()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
