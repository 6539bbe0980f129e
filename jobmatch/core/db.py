"""SQLite persistence for jobs, scraper runs, scores, profiles and source health."""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any

from jobmatch.core.schemas import (
    ExperienceRecord,
    JobTarget,
    NormalizedJob,
    ScoreAnalyses,
    ScoreBreakdown,
    ScraperRun,
    SourceHealth,
    StoredJob,
    UserProfile,
)

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id       TEXT    NOT NULL,
    source            TEXT    NOT NULL,
    source_url        TEXT    NOT NULL DEFAULT '',
    title             TEXT    NOT NULL,
    company           TEXT    NOT NULL DEFAULT '',
    location          TEXT,
    is_remote         INTEGER,
    description       TEXT,
    requirements      TEXT,
    responsibilities  TEXT,
    skills_required   TEXT,
    salary_min        REAL,
    salary_max        REAL,
    salary_currency   TEXT,
    experience_min    REAL,
    experience_max    REAL,
    employment_type   TEXT,
    posted_date       TEXT,
    company_logo_url  TEXT,
    benefits          TEXT,
    industry          TEXT,
    company_size      TEXT,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL,
    UNIQUE(source, external_id)
);
"""

_SCRAPER_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS scraper_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    source          TEXT    NOT NULL,
    status          TEXT    NOT NULL,
    started_at      TEXT    NOT NULL,
    completed_at    TEXT,
    jobs_found      INTEGER NOT NULL DEFAULT 0,
    jobs_new        INTEGER NOT NULL DEFAULT 0,
    jobs_updated    INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT
);
"""

_JOB_SCORES_TABLE = """
CREATE TABLE IF NOT EXISTS job_scores (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id                  INTEGER NOT NULL REFERENCES jobs(id),
    user_id                 TEXT    NOT NULL,
    overall_score           REAL    NOT NULL,
    semantic_score          REAL    NOT NULL,
    skill_match_score       REAL    NOT NULL,
    experience_match_score  REAL    NOT NULL,
    salary_match_score      REAL    NOT NULL,
    location_match_score    REAL    NOT NULL,
    matched_skills          TEXT    NOT NULL DEFAULT '[]',
    missing_skills          TEXT    NOT NULL DEFAULT '[]',
    score_breakdown         TEXT    NOT NULL DEFAULT '{}',
    scored_at               TEXT    NOT NULL,
    UNIQUE(job_id, user_id)
);
"""

_SKILLS_TABLE = """
CREATE TABLE IF NOT EXISTS skills (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id   TEXT NOT NULL,
    name      TEXT NOT NULL
);
"""

_EXPERIENCES_TABLE = """
CREATE TABLE IF NOT EXISTS experiences (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT    NOT NULL,
    start_date  TEXT,
    end_date    TEXT,
    is_current  INTEGER NOT NULL DEFAULT 0
);
"""

_JOB_TARGETS_TABLE = """
CREATE TABLE IF NOT EXISTS job_targets (
    user_id              TEXT PRIMARY KEY,
    target_roles         TEXT,
    preferred_locations  TEXT,
    remote_preference    TEXT,
    min_salary           REAL,
    max_salary           REAL,
    salary_currency      TEXT NOT NULL DEFAULT 'INR'
);
"""

_SOURCE_HEALTH_TABLE = """
CREATE TABLE IF NOT EXISTS source_health (
    source                TEXT PRIMARY KEY,
    enabled               INTEGER NOT NULL DEFAULT 1,
    is_blocked            INTEGER NOT NULL DEFAULT 0,
    blocked_at            TEXT,
    consecutive_failures  INTEGER NOT NULL DEFAULT 0,
    last_success          TEXT,
    last_run              TEXT
);
"""

# Columns written from a NormalizedJob, in table order.
_JOB_COLUMNS = (
    "external_id",
    "source",
    "source_url",
    "title",
    "company",
    "location",
    "is_remote",
    "description",
    "requirements",
    "responsibilities",
    "skills_required",
    "salary_min",
    "salary_max",
    "salary_currency",
    "experience_min",
    "experience_max",
    "employment_type",
    "posted_date",
    "company_logo_url",
    "benefits",
    "industry",
    "company_size",
)


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    for ddl in (
        _JOBS_TABLE,
        _SCRAPER_RUNS_TABLE,
        _JOB_SCORES_TABLE,
        _SKILLS_TABLE,
        _EXPERIENCES_TABLE,
        _JOB_TARGETS_TABLE,
        _SOURCE_HEALTH_TABLE,
    ):
        conn.execute(ddl)
    conn.commit()
    return conn


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _bool_or_none(value: Any) -> bool | None:
    return None if value is None else bool(value)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def _row_to_job(row: sqlite3.Row) -> StoredJob:
    data = {key: row[key] for key in row.keys()}
    data["is_remote"] = _bool_or_none(data["is_remote"])
    data["posted_date"] = _parse_dt(data["posted_date"])
    data["created_at"] = _parse_dt(data["created_at"])
    data["updated_at"] = _parse_dt(data["updated_at"])
    return StoredJob.model_validate(data)


def find_job_by_source_and_external_id(
    conn: sqlite3.Connection,
    source: str,
    external_id: str,
) -> StoredJob | None:
    """Return the stored job for a natural key, or None."""
    row = conn.execute(
        "SELECT * FROM jobs WHERE source = ? AND external_id = ? LIMIT 1",
        (source, external_id),
    ).fetchone()
    return _row_to_job(row) if row is not None else None


def upsert_job(conn: sqlite3.Connection, job: NormalizedJob) -> int:
    """Insert a job or update the existing row with the same (source, external_id).

    Returns the job's row ID.
    """
    now = datetime.now().isoformat()
    values: list[Any] = []
    for column in _JOB_COLUMNS:
        value = getattr(job, column)
        if column == "is_remote" and value is not None:
            value = int(value)
        elif column == "posted_date":
            value = _iso(value)
        values.append(value)

    columns = ", ".join(_JOB_COLUMNS)
    placeholders = ", ".join("?" for _ in _JOB_COLUMNS)
    updates = ", ".join(
        f"{c} = excluded.{c}" for c in _JOB_COLUMNS if c not in ("source", "external_id")
    )
    conn.execute(
        f"""
        INSERT INTO jobs ({columns}, created_at, updated_at)
        VALUES ({placeholders}, ?, ?)
        ON CONFLICT(source, external_id)
        DO UPDATE SET {updates}, updated_at = excluded.updated_at
        """,
        (*values, now, now),
    )
    conn.commit()
    row = conn.execute(
        "SELECT id FROM jobs WHERE source = ? AND external_id = ?",
        (job.source, job.external_id),
    ).fetchone()
    return int(row["id"])


def get_job(conn: sqlite3.Connection, job_id: int) -> StoredJob | None:
    """Return a job by row ID, or None."""
    row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_job(row) if row is not None else None


def find_jobs_without_score_for_user(
    conn: sqlite3.Connection,
    user_id: str,
    limit: int = 50,
) -> list[StoredJob]:
    """Return up to `limit` jobs (newest first) that have no score row for the user."""
    rows = conn.execute(
        """
        SELECT * FROM jobs j
        WHERE NOT EXISTS (
            SELECT 1 FROM job_scores s WHERE s.job_id = j.id AND s.user_id = ?
        )
        ORDER BY j.created_at DESC, j.id DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [_row_to_job(r) for r in rows]


# ---------------------------------------------------------------------------
# Scraper runs
# ---------------------------------------------------------------------------


def create_scraper_run(conn: sqlite3.Connection, source: str) -> int:
    """Open a run record with status 'running'. Returns the row ID."""
    cursor = conn.execute(
        "INSERT INTO scraper_runs (source, status, started_at) VALUES (?, 'running', ?)",
        (source, datetime.now().isoformat()),
    )
    conn.commit()
    return cursor.lastrowid or 0


def update_scraper_run(
    conn: sqlite3.Connection,
    run_id: int,
    status: str,
    jobs_found: int = 0,
    jobs_new: int = 0,
    jobs_updated: int = 0,
    error_message: str | None = None,
) -> None:
    """Close a run record with its final status and counts."""
    conn.execute(
        """
        UPDATE scraper_runs
        SET status = ?, completed_at = ?, jobs_found = ?, jobs_new = ?,
            jobs_updated = ?, error_message = ?
        WHERE id = ?
        """,
        (
            status,
            datetime.now().isoformat(),
            jobs_found,
            jobs_new,
            jobs_updated,
            error_message,
            run_id,
        ),
    )
    conn.commit()


def _row_to_run(row: sqlite3.Row) -> ScraperRun:
    return ScraperRun(
        id=row["id"],
        source=row["source"],
        status=row["status"],
        started_at=datetime.fromisoformat(row["started_at"]),
        completed_at=_parse_dt(row["completed_at"]),
        jobs_found=row["jobs_found"],
        jobs_new=row["jobs_new"],
        jobs_updated=row["jobs_updated"],
        error_message=row["error_message"],
    )


def get_scraper_runs(conn: sqlite3.Connection, limit: int = 20) -> list[ScraperRun]:
    """Return the most recent runs, newest first."""
    rows = conn.execute(
        "SELECT * FROM scraper_runs ORDER BY started_at DESC, id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [_row_to_run(r) for r in rows]


def get_latest_scraper_run(conn: sqlite3.Connection, source: str) -> ScraperRun | None:
    """Return the most recent run for a source, or None."""
    row = conn.execute(
        """
        SELECT * FROM scraper_runs WHERE source = ?
        ORDER BY started_at DESC, id DESC LIMIT 1
        """,
        (source,),
    ).fetchone()
    return _row_to_run(row) if row is not None else None


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


def upsert_job_score(
    conn: sqlite3.Connection,
    job_id: int,
    user_id: str,
    breakdown: ScoreBreakdown,
) -> None:
    """Write the score for (job_id, user_id), replacing any previous one."""
    details = json.dumps({
        "experience_analysis": breakdown.analyses.experience,
        "salary_analysis": breakdown.analyses.salary,
        "location_analysis": breakdown.analyses.location,
        "pros": breakdown.pros,
        "cons": breakdown.cons,
    })
    conn.execute(
        """
        INSERT INTO job_scores
            (job_id, user_id, overall_score, semantic_score, skill_match_score,
             experience_match_score, salary_match_score, location_match_score,
             matched_skills, missing_skills, score_breakdown, scored_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(job_id, user_id)
        DO UPDATE SET
            overall_score = excluded.overall_score,
            semantic_score = excluded.semantic_score,
            skill_match_score = excluded.skill_match_score,
            experience_match_score = excluded.experience_match_score,
            salary_match_score = excluded.salary_match_score,
            location_match_score = excluded.location_match_score,
            matched_skills = excluded.matched_skills,
            missing_skills = excluded.missing_skills,
            score_breakdown = excluded.score_breakdown,
            scored_at = excluded.scored_at
        """,
        (
            job_id,
            user_id,
            breakdown.overall_score,
            breakdown.semantic_score,
            breakdown.skill_match_score,
            breakdown.experience_match_score,
            breakdown.salary_match_score,
            breakdown.location_match_score,
            json.dumps(breakdown.matched_skills),
            json.dumps(breakdown.missing_skills),
            details,
            datetime.now().isoformat(),
        ),
    )
    conn.commit()


def get_job_score(
    conn: sqlite3.Connection,
    job_id: int,
    user_id: str,
) -> ScoreBreakdown | None:
    """Read back a persisted score, or None."""
    row = conn.execute(
        "SELECT * FROM job_scores WHERE job_id = ? AND user_id = ?",
        (job_id, user_id),
    ).fetchone()
    if row is None:
        return None
    details = json.loads(row["score_breakdown"])
    return ScoreBreakdown(
        overall_score=row["overall_score"],
        semantic_score=row["semantic_score"],
        skill_match_score=row["skill_match_score"],
        experience_match_score=row["experience_match_score"],
        salary_match_score=row["salary_match_score"],
        location_match_score=row["location_match_score"],
        matched_skills=json.loads(row["matched_skills"]),
        missing_skills=json.loads(row["missing_skills"]),
        analyses=ScoreAnalyses(
            experience=details.get("experience_analysis", ""),
            salary=details.get("salary_analysis", ""),
            location=details.get("location_analysis", ""),
        ),
        pros=details.get("pros", []),
        cons=details.get("cons", []),
    )


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def load_user_profile(conn: sqlite3.Connection, user_id: str) -> UserProfile:
    """Assemble a user's skills, experience and job target.

    Missing data yields empty lists and target=None, never an error.
    """
    skills = [
        row["name"]
        for row in conn.execute(
            "SELECT name FROM skills WHERE user_id = ? ORDER BY id", (user_id,),
        ).fetchall()
    ]
    experiences = [
        ExperienceRecord(
            start_date=_parse_date(row["start_date"]),
            end_date=_parse_date(row["end_date"]),
            is_current=bool(row["is_current"]),
        )
        for row in conn.execute(
            "SELECT * FROM experiences WHERE user_id = ? ORDER BY id", (user_id,),
        ).fetchall()
    ]
    row = conn.execute(
        "SELECT * FROM job_targets WHERE user_id = ?", (user_id,),
    ).fetchone()
    target = None
    if row is not None:
        target = JobTarget(
            target_roles=row["target_roles"],
            preferred_locations=row["preferred_locations"],
            remote_preference=row["remote_preference"],
            min_salary=row["min_salary"],
            max_salary=row["max_salary"],
            salary_currency=row["salary_currency"],
        )
    return UserProfile(user_id=user_id, skills=skills, experiences=experiences, target=target)


def save_user_profile(conn: sqlite3.Connection, profile: UserProfile) -> None:
    """Replace a user's skills, experience and job target."""
    uid = profile.user_id
    conn.execute("DELETE FROM skills WHERE user_id = ?", (uid,))
    conn.executemany(
        "INSERT INTO skills (user_id, name) VALUES (?, ?)",
        [(uid, name) for name in profile.skills],
    )
    conn.execute("DELETE FROM experiences WHERE user_id = ?", (uid,))
    conn.executemany(
        "INSERT INTO experiences (user_id, start_date, end_date, is_current) VALUES (?, ?, ?, ?)",
        [
            (uid, _iso(e.start_date), _iso(e.end_date), int(e.is_current))
            for e in profile.experiences
        ],
    )
    if profile.target is None:
        conn.execute("DELETE FROM job_targets WHERE user_id = ?", (uid,))
    else:
        t = profile.target
        conn.execute(
            """
            INSERT INTO job_targets
                (user_id, target_roles, preferred_locations, remote_preference,
                 min_salary, max_salary, salary_currency)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id)
            DO UPDATE SET
                target_roles = excluded.target_roles,
                preferred_locations = excluded.preferred_locations,
                remote_preference = excluded.remote_preference,
                min_salary = excluded.min_salary,
                max_salary = excluded.max_salary,
                salary_currency = excluded.salary_currency
            """,
            (
                uid,
                t.target_roles,
                t.preferred_locations,
                t.remote_preference,
                t.min_salary,
                t.max_salary,
                t.salary_currency,
            ),
        )
    conn.commit()


# ---------------------------------------------------------------------------
# Source health snapshots
# ---------------------------------------------------------------------------


def load_source_health(conn: sqlite3.Connection) -> list[SourceHealth]:
    """Return every persisted health snapshot."""
    rows = conn.execute("SELECT * FROM source_health ORDER BY source").fetchall()
    return [
        SourceHealth(
            source=row["source"],
            enabled=bool(row["enabled"]),
            is_blocked=bool(row["is_blocked"]),
            blocked_at=_parse_dt(row["blocked_at"]),
            consecutive_failures=row["consecutive_failures"],
            last_success=_parse_dt(row["last_success"]),
            last_run=_parse_dt(row["last_run"]),
        )
        for row in rows
    ]


def save_source_health(conn: sqlite3.Connection, health: SourceHealth) -> None:
    """Insert or replace the snapshot for one source."""
    conn.execute(
        """
        INSERT INTO source_health
            (source, enabled, is_blocked, blocked_at, consecutive_failures,
             last_success, last_run)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(source)
        DO UPDATE SET
            enabled = excluded.enabled,
            is_blocked = excluded.is_blocked,
            blocked_at = excluded.blocked_at,
            consecutive_failures = excluded.consecutive_failures,
            last_success = excluded.last_success,
            last_run = excluded.last_run
        """,
        (
            health.source,
            int(health.enabled),
            int(health.is_blocked),
            _iso(health.blocked_at),
            health.consecutive_failures,
            _iso(health.last_success),
            _iso(health.last_run),
        ),
    )
    conn.commit()
