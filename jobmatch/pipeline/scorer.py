"""Multi-factor job fit scoring.

Components (0-100 each), weighted by ScoringConfig:
  semantic   0.30  supplied by the caller, not computed here
  skills     0.30  synonym-aware fuzzy match of required skills
  experience 0.20  total years vs the job's min/max
  salary     0.10  job range vs the user's target
  location   0.10  remote preference and preferred locations

score_job() is the public boundary and never raises: on any internal error
it returns a neutral all-50 breakdown so one bad record cannot abort a batch.
"""

import logging
import math
from datetime import date

from pydantic import BaseModel, Field
from rapidfuzz.distance import Levenshtein

from jobmatch.core.config import ScoringConfig
from jobmatch.core.fields import read_list_field
from jobmatch.core.schemas import (
    ExperienceRecord,
    JobTarget,
    NormalizedJob,
    ScoreAnalyses,
    ScoreBreakdown,
    UserProfile,
)

logger = logging.getLogger(__name__)

# Canonical skill name -> alternative spellings.
SKILL_SYNONYMS: dict[str, list[str]] = {
    "javascript": ["js", "ecmascript", "es6"],
    "typescript": ["ts"],
    "react": ["reactjs", "react.js"],
    "node.js": ["nodejs", "node"],
    "postgresql": ["postgres", "psql"],
    "mongodb": ["mongo"],
    "aws": ["amazon web services"],
    "gcp": ["google cloud", "google cloud platform"],
    "kubernetes": ["k8s"],
    "machine learning": ["ml"],
    "artificial intelligence": ["ai"],
    "ci/cd": ["cicd", "continuous integration"],
}

MAX_EDIT_DISTANCE = 2
UNABLE_TO_ANALYZE = "Unable to analyze"
NEUTRAL_SCORE = 50.0


class SkillMatch(BaseModel):
    score: float
    matched_skills: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)


class ComponentScore(BaseModel):
    score: float
    analysis: str


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _fmt_years(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


def normalize_skill(skill: str) -> str:
    """Lowercase and map any known synonym to its canonical name."""
    lower = skill.lower().strip()
    for canonical, synonyms in SKILL_SYNONYMS.items():
        if lower == canonical or lower in synonyms:
            return canonical
    return lower


def skill_matches(skill: str, user_skills: list[str]) -> bool:
    """Test a normalized skill against the user's normalized skills.

    Match on equality, the synonym table, substring in either direction, or
    an edit distance of at most MAX_EDIT_DISTANCE.
    """
    if skill in user_skills:
        return True

    for synonym in SKILL_SYNONYMS.get(skill, []):
        if synonym in user_skills:
            return True

    for user_skill in user_skills:
        if not user_skill:
            continue
        if user_skill in skill or skill in user_skill:
            return True
        if Levenshtein.distance(skill, user_skill) <= MAX_EDIT_DISTANCE:
            return True

    return False


def calculate_skill_match(job: NormalizedJob, user_skills: list[str]) -> SkillMatch:
    required = read_list_field(job.skills_required)
    if not required:
        return SkillMatch(score=75.0)

    normalized_user = [normalize_skill(s) for s in user_skills if s and s.strip()]
    matched: list[str] = []
    missing: list[str] = []
    for skill in required:
        if skill_matches(normalize_skill(skill), normalized_user):
            matched.append(skill)
        else:
            missing.append(skill)

    score = round_half_up(100 * len(matched) / len(required))
    return SkillMatch(score=float(score), matched_skills=matched, missing_skills=missing)


# ---------------------------------------------------------------------------
# Experience
# ---------------------------------------------------------------------------


def total_years_experience(
    experiences: list[ExperienceRecord],
    today: date | None = None,
) -> float:
    """Sum whole-month spans across roles, in years rounded to one decimal.

    Current or open-ended roles run until today. Records without a start
    date, or with a non-positive span, contribute nothing.
    """
    today = today or date.today()
    total_months = 0
    for exp in experiences:
        if exp.start_date is None:
            continue
        end = today if exp.is_current or exp.end_date is None else exp.end_date
        months = (end.year - exp.start_date.year) * 12 + (end.month - exp.start_date.month)
        if months > 0:
            total_months += months
    return round_half_up(total_months * 10 / 12) / 10


def calculate_experience_match(job: NormalizedJob, total_years: float) -> ComponentScore:
    if not job.experience_min and not job.experience_max:
        return ComponentScore(score=80.0, analysis="No experience requirement specified")

    low = job.experience_min or 0.0
    high = job.experience_max if job.experience_max else math.inf
    years = _fmt_years(total_years)

    if low <= total_years <= high:
        requirement = f"{_fmt_years(low)}+" if math.isinf(high) else f"{_fmt_years(low)}-{_fmt_years(high)}"
        return ComponentScore(
            score=100.0,
            analysis=f"Your {years} years matches the {requirement} year requirement",
        )

    if total_years < low:
        gap = round(low - total_years, 1)
        return ComponentScore(
            score=max(0.0, 100 - gap * 15),
            analysis=(
                f"You have {years} years but {_fmt_years(low)}+ is required "
                f"({_fmt_years(gap)} year gap)"
            ),
        )

    excess = round(total_years - high, 1)
    return ComponentScore(
        score=max(60.0, 100 - excess * 5),
        analysis=f"You have {years} years which exceeds the {_fmt_years(high)} year max",
    )


# ---------------------------------------------------------------------------
# Salary and location
# ---------------------------------------------------------------------------


def calculate_salary_match(job: NormalizedJob, target: JobTarget | None) -> ComponentScore:
    if not job.salary_min and not job.salary_max:
        return ComponentScore(score=70.0, analysis="Salary not disclosed")

    if target is None or not target.min_salary:
        return ComponentScore(score=80.0, analysis="No salary preference set")

    if job.salary_max and job.salary_max < target.min_salary:
        gap = (target.min_salary - job.salary_max) / target.min_salary * 100
        return ComponentScore(
            score=max(0.0, 100 - gap),
            analysis="Max salary is below your minimum expectation",
        )

    if job.salary_min and target.max_salary and job.salary_min > target.max_salary:
        return ComponentScore(score=95.0, analysis="Salary exceeds your target range")

    return ComponentScore(score=85.0, analysis="Salary range aligns with your target")


def calculate_location_match(job: NormalizedJob, target: JobTarget | None) -> ComponentScore:
    preference = (target.remote_preference or "").lower() if target else ""

    if preference == "remote":
        if job.is_remote:
            return ComponentScore(score=100.0, analysis="Remote position matches your preference")
        return ComponentScore(score=30.0, analysis="Not remote, but you prefer remote work")

    if preference == "any":
        return ComponentScore(score=90.0, analysis="You are flexible on location")

    preferred = read_list_field(target.preferred_locations) if target else []
    if not preferred:
        return ComponentScore(score=80.0, analysis="No location preference set")

    job_location = (job.location or "").lower()
    if any(loc.lower() in job_location for loc in preferred):
        return ComponentScore(score=100.0, analysis="Location matches your preferences")

    return ComponentScore(score=40.0, analysis="Location not in your preferred locations")


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


def _compile_pros_cons(
    skills: SkillMatch,
    experience: ComponentScore,
    salary: ComponentScore,
    location: ComponentScore,
) -> tuple[list[str], list[str]]:
    pros: list[str] = []
    cons: list[str] = []

    if skills.score >= 70:
        pros.append(f"{len(skills.matched_skills)} skills match")
    elif skills.missing_skills:
        cons.append(f"Missing {len(skills.missing_skills)} skills")

    if experience.score >= 80:
        pros.append("Experience level matches well")
    elif experience.score < 50:
        cons.append("Experience level mismatch")

    if salary.score >= 80:
        pros.append("Salary range aligns")
    elif salary.score < 50:
        cons.append("Salary below expectations")

    if location.score >= 80:
        pros.append("Location/remote preference matches")

    return pros, cons


def neutral_breakdown() -> ScoreBreakdown:
    """The substitute score used when a job cannot be analyzed."""
    return ScoreBreakdown(
        overall_score=NEUTRAL_SCORE,
        semantic_score=NEUTRAL_SCORE,
        skill_match_score=NEUTRAL_SCORE,
        experience_match_score=NEUTRAL_SCORE,
        salary_match_score=NEUTRAL_SCORE,
        location_match_score=NEUTRAL_SCORE,
        analyses=ScoreAnalyses(
            experience=UNABLE_TO_ANALYZE,
            salary=UNABLE_TO_ANALYZE,
            location=UNABLE_TO_ANALYZE,
        ),
        cons=["Error occurred during scoring"],
    )


def score_job(
    job: NormalizedJob,
    profile: UserProfile,
    config: ScoringConfig | None = None,
    semantic_score: float | None = None,
    today: date | None = None,
) -> ScoreBreakdown:
    """Score one job against one user profile.

    Args:
        job: The posting to score.
        profile: The user's skills, experience and job target.
        config: Component weights; defaults to ScoringConfig().
        semantic_score: Externally computed similarity (0-100). None uses
            config.default_semantic_score.
        today: Reference date for ongoing roles; defaults to date.today().

    Returns:
        A ScoreBreakdown. Never raises.
    """
    try:
        config = config or ScoringConfig()
        semantic = config.default_semantic_score if semantic_score is None else semantic_score
        semantic = max(0.0, min(100.0, float(semantic)))

        skills = calculate_skill_match(job, profile.skills)
        total_years = total_years_experience(profile.experiences, today)
        experience = calculate_experience_match(job, total_years)
        salary = calculate_salary_match(job, profile.target)
        location = calculate_location_match(job, profile.target)

        weighted = (
            semantic * config.semantic_weight
            + skills.score * config.skills_weight
            + experience.score * config.experience_weight
            + salary.score * config.salary_weight
            + location.score * config.location_weight
        )
        overall = max(0, min(100, round_half_up(weighted)))
        pros, cons = _compile_pros_cons(skills, experience, salary, location)

        return ScoreBreakdown(
            overall_score=float(overall),
            semantic_score=semantic,
            skill_match_score=skills.score,
            experience_match_score=experience.score,
            salary_match_score=salary.score,
            location_match_score=location.score,
            matched_skills=skills.matched_skills,
            missing_skills=skills.missing_skills,
            analyses=ScoreAnalyses(
                experience=experience.analysis,
                salary=salary.analysis,
                location=location.analysis,
            ),
            pros=pros,
            cons=cons,
        )
    except Exception:
        logger.exception(
            "Error scoring job %s/%s",
            getattr(job, "source", "?"), getattr(job, "external_id", "?"),
        )
        return neutral_breakdown()
