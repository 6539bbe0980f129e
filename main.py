"""CLI entry point for the job match engine."""

import argparse
import asyncio
import logging
import sqlite3
import sys

from jobmatch.core.config import ScrapeOverrides, Settings
from jobmatch.core.db import init_db, save_user_profile
from jobmatch.core.schemas import ScrapeSummary
from jobmatch.pipeline.orchestrator import ScrapeOrchestrator, export_summary_json
from jobmatch.platforms import build_default_adapters
from jobmatch.platforms.base import CrawlerAdapter, HttpCrawlerAdapter


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--user",
        help="User ID to act for (default: user_id from settings)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def _add_source_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", help="Source name (e.g. indeed, linkedin)")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job match engine - scrape job portals and score postings against a profile",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- scrape ---
    scrape_parser = subparsers.add_parser("scrape", help="Run scrapers and score new jobs")
    _add_common_args(scrape_parser)
    scrape_parser.add_argument(
        "--sources",
        nargs="+",
        help="Only run these sources (default: every enabled source)",
    )
    scrape_parser.add_argument("--keywords", nargs="+", help="Override search keywords")
    scrape_parser.add_argument("--location", help="Override search location")
    scrape_parser.add_argument(
        "--remote",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override remote preference",
    )
    scrape_parser.add_argument("--salary-min", type=float, help="Override minimum salary")
    scrape_parser.add_argument(
        "--no-score",
        action="store_true",
        help="Do not score new jobs after scraping",
    )
    scrape_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export the summary to format (json)",
    )
    scrape_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the search config and eligible sources without scraping",
    )

    # --- status / sources / history ---
    status_parser = subparsers.add_parser("status", help="Show source health")
    _add_common_args(status_parser)

    sources_parser = subparsers.add_parser("sources", help="List registered sources")
    _add_common_args(sources_parser)

    history_parser = subparsers.add_parser("history", help="Show recent scraper runs")
    _add_common_args(history_parser)
    history_parser.add_argument(
        "--limit", type=int, default=20, help="Number of runs to show (default: 20)",
    )

    # --- source controls ---
    for name, help_text in (
        ("test-source", "Test connectivity of a source"),
        ("enable", "Enable a source"),
        ("disable", "Disable a source"),
        ("unblock", "Clear a source's block and failure count"),
    ):
        source_parser = subparsers.add_parser(name, help=help_text)
        _add_common_args(source_parser)
        _add_source_arg(source_parser)

    # --- scoring ---
    score_parser = subparsers.add_parser("score", help="Score jobs that have no score yet")
    _add_common_args(score_parser)
    score_parser.add_argument(
        "--limit", type=int, help="Maximum jobs to score (default: scrapers.score_limit)",
    )

    score_job_parser = subparsers.add_parser("score-job", help="Score one stored job")
    _add_common_args(score_job_parser)
    score_job_parser.add_argument("job_id", type=int, help="Job row ID")

    # --- profile ---
    profile_parser = subparsers.add_parser(
        "load-profile",
        help="Load skills, experience and targets from a profile YAML",
    )
    _add_common_args(profile_parser)
    profile_parser.add_argument(
        "--profile",
        default="config/profile.yaml",
        help="Path to profile YAML (default: config/profile.yaml)",
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_overrides(args: argparse.Namespace) -> ScrapeOverrides | None:
    """Collect the scrape flags that were actually given."""
    data = {
        key: value
        for key, value in (
            ("keywords", args.keywords),
            ("location", args.location),
            ("remote", args.remote),
            ("salary_min", args.salary_min),
        )
        if value is not None
    }
    return ScrapeOverrides(**data) if data else None


def print_summary(summary: ScrapeSummary) -> None:
    print(
        f"\nScrape complete: {summary.total_jobs_new} new, {summary.total_jobs_updated} updated, "
        f"{summary.sources_succeeded} succeeded, {summary.sources_failed} failed.",
    )
    for r in summary.results:
        if r.success:
            print(
                f"  {r.source}: {r.jobs_found} found, {r.jobs_new} new, "
                f"{r.jobs_updated} updated ({r.duration_ms} ms)",
            )
        else:
            blocked = " [now blocked]" if r.blocked else ""
            print(f"  {r.source}: FAILED - {r.error}{blocked}")
    if summary.jobs_scored:
        print(f"Scored {summary.jobs_scored} new jobs.")


def dry_run(orchestrator: ScrapeOrchestrator, user_id: str, args: argparse.Namespace) -> None:
    """Print what would happen without contacting any source."""
    config = orchestrator.build_search_config(user_id).with_overrides(build_overrides(args))
    print(f"[DRY RUN] Search config for user '{user_id}':")
    print(f"  {config.model_dump()}")

    requested = [s.lower() for s in args.sources] if args.sources else None
    for source in orchestrator.available_sources():
        if requested is not None and source not in requested:
            continue
        status = "OK" if orchestrator.tracker.is_available(source) else "SKIPPED"
        print(f"[DRY RUN] {source}: {status}")
    print("[DRY RUN] No requests sent")


async def cmd_scrape(
    orchestrator: ScrapeOrchestrator, user_id: str, args: argparse.Namespace,
) -> None:
    summary = await orchestrator.run_scrapers(
        user_id,
        sources=args.sources,
        overrides=build_overrides(args),
        score_after_scrape=not args.no_score,
    )
    print_summary(summary)
    if args.export == "json":
        print(f"\n{export_summary_json(summary)}")


def cmd_status(orchestrator: ScrapeOrchestrator) -> None:
    statuses = orchestrator.get_source_statuses()
    if not statuses:
        print("No sources registered.")
        return
    for h in statuses:
        if not h.enabled:
            state = "disabled"
        elif h.is_blocked:
            state = f"blocked since {h.blocked_at:%Y-%m-%d %H:%M}" if h.blocked_at else "blocked"
        else:
            state = "available"
        last_run = f"{h.last_run:%Y-%m-%d %H:%M}" if h.last_run else "never"
        last_success = f"{h.last_success:%Y-%m-%d %H:%M}" if h.last_success else "never"
        print(
            f"  {h.source:<10} {state:<30} failures={h.consecutive_failures} "
            f"last_run={last_run} last_success={last_success}",
        )


def cmd_history(orchestrator: ScrapeOrchestrator, limit: int) -> None:
    runs = orchestrator.get_history(limit)
    if not runs:
        print("No scraper runs recorded.")
        return
    for r in runs:
        line = (
            f"  #{r.id} {r.started_at:%Y-%m-%d %H:%M:%S} {r.source:<10} {r.status:<8} "
            f"found={r.jobs_found} new={r.jobs_new} updated={r.jobs_updated}"
        )
        if r.error_message:
            line += f" error={r.error_message}"
        print(line)


def cmd_score_job(orchestrator: ScrapeOrchestrator, user_id: str, job_id: int) -> bool:
    breakdown = orchestrator.score_job(user_id, job_id)
    if breakdown is None:
        print(f"Job {job_id} not found.", file=sys.stderr)
        return False
    print(f"Job {job_id}: overall {breakdown.overall_score:.0f}")
    print(
        f"  semantic={breakdown.semantic_score:.0f} skills={breakdown.skill_match_score:.0f} "
        f"experience={breakdown.experience_match_score:.0f} "
        f"salary={breakdown.salary_match_score:.0f} location={breakdown.location_match_score:.0f}",
    )
    print(f"  Matched: {', '.join(breakdown.matched_skills) or '-'}")
    print(f"  Missing: {', '.join(breakdown.missing_skills) or '-'}")
    print(f"  Experience: {breakdown.analyses.experience}")
    print(f"  Salary: {breakdown.analyses.salary}")
    print(f"  Location: {breakdown.analyses.location}")
    for pro in breakdown.pros:
        print(f"  + {pro}")
    for con in breakdown.cons:
        print(f"  - {con}")
    return True


def cmd_load_profile(conn: sqlite3.Connection, user_id: str, path: str) -> None:
    from jobmatch.profile.schema import ProfileData

    print(f"Loading profile from {path}...")
    profile = ProfileData.from_yaml(path).to_user_profile(user_id)
    save_user_profile(conn, profile)
    print(f"Profile saved for user '{user_id}'")
    print(f"  Skills: {len(profile.skills)}")
    print(f"  Experiences: {len(profile.experiences)}")
    print(f"  Targets: {'yes' if profile.target else 'no'}")


async def close_adapters(adapters: list[CrawlerAdapter]) -> None:
    for adapter in adapters:
        if isinstance(adapter, HttpCrawlerAdapter):
            await adapter.aclose()


async def run_async(orchestrator: ScrapeOrchestrator, adapters: list[CrawlerAdapter],
                    user_id: str, args: argparse.Namespace) -> bool:
    """Dispatch the commands that talk to sources."""
    try:
        if args.command == "scrape":
            await cmd_scrape(orchestrator, user_id, args)
            return True
        result = await orchestrator.test_scraper(args.source)
        print(f"{result.source}: {'OK' if result.success else 'FAILED'} - {result.message}")
        return result.success
    finally:
        await close_adapters(adapters)


def dispatch(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> bool:
    """Run one command. Returns False when the command failed."""
    user_id = args.user or settings.user_id

    if args.command == "load-profile":
        cmd_load_profile(conn, user_id, args.profile)
        return True

    adapters = build_default_adapters(settings)
    orchestrator = ScrapeOrchestrator(
        conn, adapters, settings=settings.scrapers, scoring=settings.scoring,
    )

    if args.command == "scrape" and args.dry_run:
        dry_run(orchestrator, user_id, args)
        return True
    if args.command in ("scrape", "test-source"):
        return asyncio.run(run_async(orchestrator, adapters, user_id, args))

    if args.command == "status":
        cmd_status(orchestrator)
    elif args.command == "sources":
        for source in orchestrator.available_sources():
            print(f"  {source}")
    elif args.command == "history":
        cmd_history(orchestrator, args.limit)
    elif args.command in ("enable", "disable"):
        enabled = args.command == "enable"
        if not orchestrator.set_source_enabled(args.source, enabled):
            print(f"Unknown source: {args.source}", file=sys.stderr)
            return False
        print(f"{args.source}: {'enabled' if enabled else 'disabled'}")
    elif args.command == "unblock":
        if not orchestrator.unblock_source(args.source):
            print(f"Unknown source: {args.source}", file=sys.stderr)
            return False
        print(f"{args.source}: unblocked")
    elif args.command == "score":
        limit = args.limit if args.limit is not None else settings.scrapers.score_limit
        scored = orchestrator.score_new_jobs(user_id, limit=limit)
        print(f"Scored {scored} jobs for user '{user_id}'.")
    elif args.command == "score-job":
        return cmd_score_job(orchestrator, user_id, args.job_id)
    return True


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    conn = init_db(settings.database.path)
    try:
        ok = dispatch(args, settings, conn)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        conn.close()

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
