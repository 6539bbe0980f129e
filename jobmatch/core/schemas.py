"""Core data models for the job match engine."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class NormalizedJob(BaseModel):
    """A job posting in the canonical schema every adapter produces.

    Frozen. (source, external_id) is the natural key for upserts.
    """

    model_config = ConfigDict(frozen=True)

    external_id: str
    source: str
    source_url: str = ""
    title: str
    company: str = ""
    location: str | None = None
    is_remote: bool | None = None
    description: str | None = None
    requirements: str | None = None
    responsibilities: str | None = None
    skills_required: str | None = None
    salary_min: float | None = None
    salary_max: float | None = None
    salary_currency: str | None = None
    experience_min: float | None = None
    experience_max: float | None = None
    employment_type: str | None = None
    posted_date: datetime | None = None
    company_logo_url: str | None = None
    benefits: str | None = None
    industry: str | None = None
    company_size: str | None = None


class StoredJob(NormalizedJob):
    """A NormalizedJob as persisted, with its database identity."""

    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SourceHealth(BaseModel):
    """Circuit-breaker state for a single source."""

    source: str
    enabled: bool = True
    is_blocked: bool = False
    blocked_at: datetime | None = None
    consecutive_failures: int = Field(default=0, ge=0)
    last_success: datetime | None = None
    last_run: datetime | None = None


class ScrapeRunResult(BaseModel):
    """Outcome of one adapter invocation."""

    model_config = ConfigDict(frozen=True)

    source: str
    success: bool
    jobs_found: int = 0
    jobs_new: int = 0
    jobs_updated: int = 0
    error: str | None = None
    blocked: bool = False
    duration_ms: int = 0


class ScrapeSummary(BaseModel):
    """Aggregate of every ScrapeRunResult from one scrape_all call."""

    results: list[ScrapeRunResult] = Field(default_factory=list)
    total_jobs_new: int = 0
    total_jobs_updated: int = 0
    sources_succeeded: int = 0
    sources_failed: int = 0
    jobs_scored: int = 0

    @classmethod
    def from_results(cls, results: list[ScrapeRunResult]) -> "ScrapeSummary":
        return cls(
            results=results,
            total_jobs_new=sum(r.jobs_new for r in results),
            total_jobs_updated=sum(r.jobs_updated for r in results),
            sources_succeeded=sum(1 for r in results if r.success),
            sources_failed=sum(1 for r in results if not r.success),
        )


class ScraperRun(BaseModel):
    """A row of scraper run history."""

    id: int
    source: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    jobs_found: int = 0
    jobs_new: int = 0
    jobs_updated: int = 0
    error_message: str | None = None


class ConnectionTestResult(BaseModel):
    """Result of probing a single source."""

    source: str
    success: bool
    message: str


class ScoreAnalyses(BaseModel):
    """Human-readable explanations for the non-skill components."""

    model_config = ConfigDict(frozen=True)

    experience: str = ""
    salary: str = ""
    location: str = ""


class ScoreBreakdown(BaseModel):
    """Explainable multi-factor fit score for a (job, user) pair."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(ge=0.0, le=100.0)
    semantic_score: float = Field(ge=0.0, le=100.0)
    skill_match_score: float = Field(ge=0.0, le=100.0)
    experience_match_score: float = Field(ge=0.0, le=100.0)
    salary_match_score: float = Field(ge=0.0, le=100.0)
    location_match_score: float = Field(ge=0.0, le=100.0)
    matched_skills: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)
    analyses: ScoreAnalyses = Field(default_factory=ScoreAnalyses)
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class ExperienceRecord(BaseModel):
    """One role in the user's work history."""

    start_date: date | None = None
    end_date: date | None = None
    is_current: bool = False


class JobTarget(BaseModel):
    """The user's job search preferences.

    target_roles and preferred_locations keep their stored text form
    (JSON array or comma-separated); see jobmatch.core.fields.
    """

    target_roles: str | None = None
    preferred_locations: str | None = None
    remote_preference: str | None = None
    min_salary: float | None = None
    max_salary: float | None = None
    salary_currency: str = "INR"


class UserProfile(BaseModel):
    """Everything the scorer and config builder need to know about a user."""

    user_id: str
    skills: list[str] = Field(default_factory=list)
    experiences: list[ExperienceRecord] = Field(default_factory=list)
    target: JobTarget | None = None
