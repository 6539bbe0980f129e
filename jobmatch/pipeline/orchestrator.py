"""Orchestrator: wires health gate, adapters, DB upsert, run history and scoring.

Data flow per scrape:
  1. Build SearchConfig from the user's profile, apply overrides
  2. Select eligible sources (registered, enabled, not blocked)
  3. Run adapters in batches of max_concurrency
  4. Upsert each job, record the run, update and persist source health
  5. Optionally score the newly stored jobs
"""

import asyncio
import json
import logging
import sqlite3
import time
from collections.abc import Callable, Iterable
from datetime import timedelta

from jobmatch.core.config import (
    DEFAULT_KEYWORDS,
    ScoringConfig,
    ScrapeOverrides,
    ScraperSettings,
    SearchConfig,
)
from jobmatch.core.db import (
    create_scraper_run,
    find_job_by_source_and_external_id,
    find_jobs_without_score_for_user,
    get_job,
    get_latest_scraper_run,
    get_scraper_runs,
    load_source_health,
    load_user_profile,
    save_source_health,
    update_scraper_run,
    upsert_job,
    upsert_job_score,
)
from jobmatch.core.fields import read_list_field
from jobmatch.core.schemas import (
    ConnectionTestResult,
    ScoreBreakdown,
    ScraperRun,
    ScrapeRunResult,
    ScrapeSummary,
    SourceHealth,
    StoredJob,
    UserProfile,
)
from jobmatch.pipeline.health import SourceHealthTracker
from jobmatch.pipeline.scorer import round_half_up, total_years_experience
from jobmatch.pipeline.scorer import score_job as compute_score
from jobmatch.platforms.base import CrawlerAdapter

logger = logging.getLogger(__name__)

TOP_SKILL_KEYWORDS = 5

SemanticScorer = Callable[[StoredJob, UserProfile], float | None]


class ScrapeOrchestrator:
    """Runs crawler adapters for a user and keeps source health and history.

    Adapters are scheduled in registration order. Health snapshots are
    restored from the database on construction and written back after every
    change, so circuit-breaker state survives between CLI invocations.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        adapters: Iterable[CrawlerAdapter],
        settings: ScraperSettings | None = None,
        scoring: ScoringConfig | None = None,
        tracker: SourceHealthTracker | None = None,
        semantic_scorer: SemanticScorer | None = None,
    ) -> None:
        self._conn = conn
        self._settings = settings or ScraperSettings()
        self._scoring = scoring or ScoringConfig()
        self._tracker = tracker or SourceHealthTracker(
            max_consecutive_failures=self._settings.max_consecutive_failures,
            block_duration=timedelta(hours=self._settings.block_duration_hours),
        )
        self._semantic_scorer = semantic_scorer

        self._adapters: dict[str, CrawlerAdapter] = {}
        for adapter in adapters:
            source = adapter.source.lower()
            self._adapters[source] = adapter
            enabled = adapter.enabled and source not in self._settings.disabled_sources
            self._tracker.register(source, enabled=enabled)
            logger.debug("Registered scraper: %s", source)

        for snapshot in load_source_health(conn):
            if snapshot.source in self._settings.disabled_sources:
                snapshot = snapshot.model_copy(update={"enabled": False})
            if self._tracker.restore(snapshot) and snapshot.source in self._adapters:
                self._adapters[snapshot.source].enabled = snapshot.enabled

    @property
    def tracker(self) -> SourceHealthTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Search config
    # ------------------------------------------------------------------

    def build_search_config(self, user_id: str) -> SearchConfig:
        """Derive search parameters from the user's targets, skills and experience."""
        profile = load_user_profile(self._conn, user_id)
        target = profile.target

        keywords: list[str] = []
        locations: list[str] = []
        if target is not None:
            keywords.extend(read_list_field(target.target_roles))
            locations = read_list_field(target.preferred_locations)
        keywords.extend(profile.skills[:TOP_SKILL_KEYWORDS])

        experience_years = None
        if profile.experiences:
            experience_years = float(round_half_up(total_years_experience(profile.experiences)))

        remote = None
        if target is not None:
            remote = target.remote_preference in ("remote", "any")

        return SearchConfig(
            keywords=keywords,
            location=locations[0] if locations else None,
            locations=locations,
            remote=remote,
            experience_years=experience_years,
            salary_min=target.min_salary if target else None,
            salary_currency=(target.salary_currency if target else None) or "INR",
        )

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    async def scrape_all(
        self,
        user_id: str,
        sources: list[str] | None = None,
        overrides: ScrapeOverrides | None = None,
    ) -> ScrapeSummary:
        """Run every eligible adapter (or the requested subset) for a user."""
        config = self.build_search_config(user_id).with_overrides(overrides)
        if not config.keywords:
            logger.warning("No search keywords available, using default")
            config = config.model_copy(update={"keywords": list(DEFAULT_KEYWORDS)})

        logger.info("Starting scrape with config: %s", config.model_dump_json())

        selected = self._select_adapters(sources)
        if not selected:
            logger.warning("No scrapers available to run")
            return ScrapeSummary()

        results: list[ScrapeRunResult] = []
        batch_size = self._settings.max_concurrency
        for i in range(0, len(selected), batch_size):
            batch = selected[i:i + batch_size]
            batch_results = await asyncio.gather(
                *(self.run_scraper(adapter, config) for adapter in batch),
            )
            results.extend(batch_results)

        summary = ScrapeSummary.from_results(results)
        logger.info(
            "Scraping complete: %d new, %d updated, %d/%d sources succeeded",
            summary.total_jobs_new,
            summary.total_jobs_updated,
            summary.sources_succeeded,
            len(results),
        )
        return summary

    def _select_adapters(self, sources: list[str] | None) -> list[CrawlerAdapter]:
        selected: list[CrawlerAdapter] = []
        if sources:
            seen: set[str] = set()
            for name in sources:
                key = name.strip().lower()
                if not key or key in seen:
                    continue
                seen.add(key)
                adapter = self._adapters.get(key)
                if adapter is None:
                    logger.warning("Scraper %s not found, skipping", name)
                elif not self._tracker.is_available(key):
                    logger.warning("Scraper %s not available, skipping", key)
                else:
                    selected.append(adapter)
            return selected

        for source, adapter in self._adapters.items():
            if self._tracker.is_available(source):
                selected.append(adapter)
        return selected

    async def run_scraper(self, adapter: CrawlerAdapter, config: SearchConfig) -> ScrapeRunResult:
        """Run one adapter and store its jobs. Never raises."""
        source = adapter.source.lower()
        started = time.monotonic()
        run_id: int | None = None
        try:
            run_id = create_scraper_run(self._conn, source)
            logger.info("[%s] Starting scraper", source)

            jobs = await adapter.scrape(config)
            jobs_new = 0
            jobs_updated = 0
            for job in jobs:
                try:
                    existing = find_job_by_source_and_external_id(
                        self._conn, job.source, job.external_id,
                    )
                    upsert_job(self._conn, job)
                except (sqlite3.Error, ValueError) as exc:
                    logger.warning("[%s] Failed to process job %s: %s", source, job.external_id, exc)
                    continue
                if existing is None:
                    jobs_new += 1
                else:
                    jobs_updated += 1

            update_scraper_run(
                self._conn,
                run_id,
                "success",
                jobs_found=len(jobs),
                jobs_new=jobs_new,
                jobs_updated=jobs_updated,
            )
            self._tracker.record_success(source)
            self._persist_health(source)

            logger.info(
                "[%s] Completed: %d found, %d new, %d updated",
                source, len(jobs), jobs_new, jobs_updated,
            )
            return ScrapeRunResult(
                source=source,
                success=True,
                jobs_found=len(jobs),
                jobs_new=jobs_new,
                jobs_updated=jobs_updated,
                duration_ms=_elapsed_ms(started),
            )
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("[%s] Failed: %s", source, message)
            if run_id is not None:
                try:
                    update_scraper_run(self._conn, run_id, "failed", error_message=message)
                except sqlite3.Error as db_exc:
                    logger.error("[%s] Could not record failed run: %s", source, db_exc)
            blocked = self._tracker.record_failure(source)
            self._persist_health(source)
            return ScrapeRunResult(
                source=source,
                success=False,
                error=message,
                blocked=blocked,
                duration_ms=_elapsed_ms(started),
            )

    async def run_scrapers(
        self,
        user_id: str,
        sources: list[str] | None = None,
        overrides: ScrapeOverrides | None = None,
        score_after_scrape: bool = True,
        score_limit: int | None = None,
    ) -> ScrapeSummary:
        """Scrape, then score the new jobs when any were stored."""
        summary = await self.scrape_all(user_id, sources=sources, overrides=overrides)
        if score_after_scrape and summary.total_jobs_new > 0:
            limit = score_limit if score_limit is not None else self._settings.score_limit
            summary.jobs_scored = self.score_new_jobs(user_id, limit=limit)
        return summary

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score_job(self, user_id: str, job_id: int) -> ScoreBreakdown | None:
        """Score one stored job for a user and persist it. None if the job is unknown."""
        job = get_job(self._conn, job_id)
        if job is None:
            logger.warning("Job %d not found", job_id)
            return None
        profile = load_user_profile(self._conn, user_id)
        return self._score_and_store(job, profile)

    def score_new_jobs(self, user_id: str, limit: int = 50) -> int:
        """Score jobs that have no score for the user yet. Returns the count stored."""
        jobs = find_jobs_without_score_for_user(self._conn, user_id, limit)
        if not jobs:
            return 0
        profile = load_user_profile(self._conn, user_id)
        scored = 0
        for job in jobs:
            try:
                self._score_and_store(job, profile)
            except sqlite3.Error as exc:
                logger.warning("Failed to score job %d: %s", job.id, exc)
                continue
            scored += 1
        logger.info("Scored %d/%d new jobs for user %s", scored, len(jobs), user_id)
        return scored

    def _score_and_store(self, job: StoredJob, profile: UserProfile) -> ScoreBreakdown:
        semantic = None
        if self._semantic_scorer is not None:
            try:
                semantic = self._semantic_scorer(job, profile)
            except Exception:
                logger.exception("Semantic scoring failed for job %d", job.id)
        breakdown = compute_score(job, profile, self._scoring, semantic_score=semantic)
        upsert_job_score(self._conn, job.id, profile.user_id, breakdown)
        return breakdown

    # ------------------------------------------------------------------
    # Status and operator controls
    # ------------------------------------------------------------------

    def get_source_statuses(self) -> list[SourceHealth]:
        """Health of every source, with run timestamps from the latest history row."""
        statuses: list[SourceHealth] = []
        for health in self._tracker.statuses():
            latest = get_latest_scraper_run(self._conn, health.source)
            if latest is not None:
                update = {"last_run": latest.started_at}
                if latest.status == "success" and latest.completed_at is not None:
                    update["last_success"] = latest.completed_at
                health = health.model_copy(update=update)
            statuses.append(health)
        return statuses

    def get_history(self, limit: int = 20) -> list[ScraperRun]:
        return get_scraper_runs(self._conn, limit)

    async def test_scraper(self, source: str) -> ConnectionTestResult:
        key = source.lower()
        adapter = self._adapters.get(key)
        if adapter is None:
            return ConnectionTestResult(
                source=source, success=False, message=f"Scraper '{source}' not found",
            )
        try:
            success = await adapter.test_connection()
        except Exception as exc:
            return ConnectionTestResult(
                source=key, success=False, message=str(exc) or "Connection failed",
            )
        return ConnectionTestResult(
            source=key,
            success=success,
            message="Connection successful" if success else "Connection failed",
        )

    def available_sources(self) -> list[str]:
        return list(self._adapters)

    def set_source_enabled(self, source: str, enabled: bool) -> bool:
        key = source.lower()
        if not self._tracker.set_enabled(key, enabled):
            return False
        adapter = self._adapters.get(key)
        if adapter is not None:
            adapter.enabled = enabled
        self._persist_health(key)
        return True

    def unblock_source(self, source: str) -> bool:
        key = source.lower()
        if not self._tracker.unblock(key):
            return False
        self._persist_health(key)
        return True

    def _persist_health(self, source: str) -> None:
        health = self._tracker.get(source)
        if health is None:
            return
        try:
            save_source_health(self._conn, health)
        except sqlite3.Error as exc:
            logger.error("[%s] Could not persist source health: %s", source, exc)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def export_summary_json(summary: ScrapeSummary) -> str:
    """Export a scrape summary as a JSON string."""
    return json.dumps(summary.model_dump(mode="json"), indent=2)
