"""Tests for the multi-factor job scorer."""

from datetime import date
from unittest.mock import patch

import pytest

from jobmatch.core.config import ScoringConfig
from jobmatch.core.schemas import ExperienceRecord, JobTarget, NormalizedJob, UserProfile
from jobmatch.pipeline.scorer import (
    calculate_experience_match,
    calculate_location_match,
    calculate_salary_match,
    calculate_skill_match,
    neutral_breakdown,
    normalize_skill,
    round_half_up,
    score_job,
    skill_matches,
    total_years_experience,
)

TODAY = date(2024, 6, 15)


def _job(**kwargs: object) -> NormalizedJob:
    defaults: dict[str, object] = {
        "external_id": "1",
        "source": "indeed",
        "title": "Backend Engineer",
        "company": "Acme",
    }
    defaults.update(kwargs)
    return NormalizedJob(**defaults)


def _profile(**kwargs: object) -> UserProfile:
    defaults: dict[str, object] = {"user_id": "alice"}
    defaults.update(kwargs)
    return UserProfile(**defaults)


# ---------------------------------------------------------------------------
# Skill normalization
# ---------------------------------------------------------------------------


class TestNormalizeSkill:
    def test_lowercases_and_trims(self) -> None:
        assert normalize_skill("  Python ") == "python"

    def test_synonym_maps_to_canonical(self) -> None:
        assert normalize_skill("JS") == "javascript"
        assert normalize_skill("k8s") == "kubernetes"
        assert normalize_skill("Postgres") == "postgresql"

    def test_canonical_unchanged(self) -> None:
        assert normalize_skill("JavaScript") == "javascript"

    def test_unknown_skill(self) -> None:
        assert normalize_skill("Elixir") == "elixir"


class TestSkillMatches:
    def test_exact(self) -> None:
        assert skill_matches("python", ["python"]) is True

    def test_substring_either_direction(self) -> None:
        assert skill_matches("react native", ["react"]) is True
        assert skill_matches("sql", ["postgresql"]) is True

    def test_edit_distance_within_two(self) -> None:
        assert skill_matches("kubernets", ["kubernetes"]) is True

    def test_no_match(self) -> None:
        assert skill_matches("django", ["python"]) is False

    def test_empty_user_skills(self) -> None:
        assert skill_matches("python", []) is False


# ---------------------------------------------------------------------------
# Skill match
# ---------------------------------------------------------------------------


class TestSkillMatch:
    def test_half_matched(self) -> None:
        result = calculate_skill_match(_job(skills_required="Python, Django"), ["Python"])
        assert result.score == 50
        assert result.matched_skills == ["Python"]
        assert result.missing_skills == ["Django"]

    def test_json_array_requirements(self) -> None:
        result = calculate_skill_match(_job(skills_required='["Python", "Django"]'), ["Django"])
        assert result.matched_skills == ["Django"]
        assert result.missing_skills == ["Python"]

    def test_js_matches_javascript(self) -> None:
        result = calculate_skill_match(_job(skills_required="JavaScript"), ["JS"])
        assert result.score == 100
        assert result.matched_skills == ["JavaScript"]

    def test_javascript_matches_js(self) -> None:
        result = calculate_skill_match(_job(skills_required="JS"), ["JavaScript"])
        assert result.score == 100
        assert result.matched_skills == ["JS"]

    def test_no_requirements(self) -> None:
        result = calculate_skill_match(_job(skills_required=None), ["Python"])
        assert result.score == 75
        assert result.matched_skills == []
        assert result.missing_skills == []

    def test_blank_requirements(self) -> None:
        assert calculate_skill_match(_job(skills_required="  "), ["Python"]).score == 75

    def test_user_without_skills(self) -> None:
        result = calculate_skill_match(_job(skills_required="Python, Go"), [])
        assert result.score == 0
        assert result.missing_skills == ["Python", "Go"]

    def test_rounds_half_up(self) -> None:
        # 2 of 3 = 66.67 -> 67
        result = calculate_skill_match(_job(skills_required="Python, Django, Haskell"),
                                       ["Python", "Django"])
        assert result.score == 67


# ---------------------------------------------------------------------------
# Experience
# ---------------------------------------------------------------------------


class TestTotalYearsExperience:
    def test_closed_role(self) -> None:
        exps = [ExperienceRecord(start_date=date(2020, 1, 1), end_date=date(2023, 1, 1))]
        assert total_years_experience(exps, TODAY) == 3.0

    def test_current_role_runs_to_today(self) -> None:
        exps = [ExperienceRecord(start_date=date(2022, 6, 1), is_current=True,
                                 end_date=date(2022, 7, 1))]
        assert total_years_experience(exps, TODAY) == 2.0

    def test_open_ended_role_runs_to_today(self) -> None:
        exps = [ExperienceRecord(start_date=date(2023, 6, 1))]
        assert total_years_experience(exps, TODAY) == 1.0

    def test_sums_roles_and_rounds(self) -> None:
        exps = [
            ExperienceRecord(start_date=date(2020, 1, 1), end_date=date(2021, 7, 1)),  # 18
            ExperienceRecord(start_date=date(2022, 1, 1), end_date=date(2022, 5, 1)),  # 4
        ]
        assert total_years_experience(exps, TODAY) == 1.8

    def test_half_tenth_rounds_up(self) -> None:
        exps = [ExperienceRecord(start_date=date(2023, 1, 1), end_date=date(2023, 4, 1))]
        assert total_years_experience(exps, TODAY) == 0.3

    def test_skips_missing_start_and_negative_spans(self) -> None:
        exps = [
            ExperienceRecord(end_date=date(2020, 1, 1)),
            ExperienceRecord(start_date=date(2023, 1, 1), end_date=date(2022, 1, 1)),
        ]
        assert total_years_experience(exps, TODAY) == 0.0

    def test_no_experience(self) -> None:
        assert total_years_experience([], TODAY) == 0.0


class TestExperienceMatch:
    def test_no_requirement(self) -> None:
        result = calculate_experience_match(_job(), 4)
        assert result.score == 80
        assert result.analysis == "No experience requirement specified"

    def test_within_range(self) -> None:
        result = calculate_experience_match(_job(experience_min=3, experience_max=5), 4)
        assert result.score == 100
        assert result.analysis == "Your 4 years matches the 3-5 year requirement"

    def test_min_only(self) -> None:
        result = calculate_experience_match(_job(experience_min=3), 10)
        assert result.score == 100
        assert "3+" in result.analysis

    def test_below_min(self) -> None:
        result = calculate_experience_match(_job(experience_min=5, experience_max=8), 3)
        assert result.score == 70
        assert "2 year gap" in result.analysis

    def test_far_below_min_floors_at_zero(self) -> None:
        result = calculate_experience_match(_job(experience_min=10), 0)
        assert result.score == 0

    def test_above_max(self) -> None:
        result = calculate_experience_match(_job(experience_min=2, experience_max=5), 9)
        assert result.score == 80
        assert "exceeds" in result.analysis

    def test_far_above_max_floors_at_sixty(self) -> None:
        result = calculate_experience_match(_job(experience_max=2), 20)
        assert result.score == 60


# ---------------------------------------------------------------------------
# Salary
# ---------------------------------------------------------------------------


class TestSalaryMatch:
    def test_no_job_salary(self) -> None:
        assert calculate_salary_match(_job(), JobTarget(min_salary=100)).score == 70

    def test_no_user_minimum(self) -> None:
        job = _job(salary_min=100, salary_max=200)
        assert calculate_salary_match(job, None).score == 80
        assert calculate_salary_match(job, JobTarget()).score == 80

    def test_max_below_user_minimum(self) -> None:
        job = _job(salary_min=30_000, salary_max=50_000)
        result = calculate_salary_match(job, JobTarget(min_salary=100_000))
        assert result.score == 50
        assert result.analysis == "Max salary is below your minimum expectation"

    def test_far_below_floors_at_zero(self) -> None:
        job = _job(salary_max=10)
        result = calculate_salary_match(job, JobTarget(min_salary=100_000))
        assert result.score >= 0

    def test_min_above_user_max(self) -> None:
        job = _job(salary_min=200, salary_max=300)
        assert calculate_salary_match(job, JobTarget(min_salary=100, max_salary=150)).score == 95

    def test_aligned(self) -> None:
        job = _job(salary_min=120, salary_max=180)
        assert calculate_salary_match(job, JobTarget(min_salary=100, max_salary=150)).score == 85


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------


class TestLocationMatch:
    def test_prefers_remote_and_job_remote(self) -> None:
        target = JobTarget(remote_preference="remote")
        assert calculate_location_match(_job(is_remote=True), target).score == 100

    def test_prefers_remote_job_onsite(self) -> None:
        target = JobTarget(remote_preference="remote")
        assert calculate_location_match(_job(is_remote=False), target).score == 30

    def test_any(self) -> None:
        target = JobTarget(remote_preference="any")
        assert calculate_location_match(_job(location="Anywhere"), target).score == 90

    def test_preferred_location_match_case_insensitive(self) -> None:
        target = JobTarget(preferred_locations="Pune, bangalore")
        result = calculate_location_match(_job(location="Bangalore, India"), target)
        assert result.score == 100

    def test_preferred_locations_json(self) -> None:
        target = JobTarget(preferred_locations='["Pune"]')
        assert calculate_location_match(_job(location="Pune"), target).score == 100

    def test_preferred_location_miss(self) -> None:
        target = JobTarget(preferred_locations="Pune")
        assert calculate_location_match(_job(location="Delhi"), target).score == 40

    def test_no_preferences(self) -> None:
        assert calculate_location_match(_job(location="Delhi"), None).score == 80
        assert calculate_location_match(_job(location="Delhi"), JobTarget()).score == 80


# ---------------------------------------------------------------------------
# score_job
# ---------------------------------------------------------------------------


class TestScoreJob:
    def test_weighted_overall(self) -> None:
        job = _job(skills_required="Python, Django")
        result = score_job(job, _profile(skills=["Python"]), today=TODAY)
        # 0.3*70 + 0.3*50 + 0.2*80 + 0.1*70 + 0.1*80
        assert result.overall_score == 67
        assert result.semantic_score == 70
        assert result.skill_match_score == 50
        assert result.experience_match_score == 80
        assert result.salary_match_score == 70
        assert result.location_match_score == 80
        assert result.matched_skills == ["Python"]
        assert result.missing_skills == ["Django"]

    def test_pros_and_cons(self) -> None:
        job = _job(skills_required="Python, Django")
        result = score_job(job, _profile(skills=["Python"]), today=TODAY)
        assert result.cons == ["Missing 1 skills"]
        assert result.pros == ["Experience level matches well", "Location/remote preference matches"]

    def test_all_strong(self) -> None:
        job = _job(
            skills_required="Python",
            experience_min=2,
            experience_max=6,
            salary_min=120,
            salary_max=180,
            is_remote=True,
        )
        profile = _profile(
            skills=["Python"],
            experiences=[ExperienceRecord(start_date=date(2020, 6, 1), is_current=True)],
            target=JobTarget(remote_preference="remote", min_salary=100, max_salary=150),
        )
        result = score_job(job, profile, semantic_score=90, today=TODAY)
        # 0.3*90 + 0.3*100 + 0.2*100 + 0.1*85 + 0.1*100 = 95.5 -> 96
        assert result.overall_score == 96
        assert result.pros == [
            "1 skills match",
            "Experience level matches well",
            "Salary range aligns",
            "Location/remote preference matches",
        ]
        assert result.cons == []

    def test_weak_match_cons(self) -> None:
        job = _job(skills_required="Go", experience_min=10, salary_max=10, is_remote=False)
        profile = _profile(
            skills=["Python"],
            target=JobTarget(remote_preference="remote", min_salary=100_000),
        )
        result = score_job(job, profile, today=TODAY)
        assert result.cons == [
            "Missing 1 skills",
            "Experience level mismatch",
            "Salary below expectations",
        ]

    def test_semantic_score_clamped(self) -> None:
        result = score_job(_job(), _profile(), semantic_score=150, today=TODAY)
        assert result.semantic_score == 100
        result = score_job(_job(), _profile(), semantic_score=-5, today=TODAY)
        assert result.semantic_score == 0

    def test_custom_weights(self) -> None:
        config = ScoringConfig(
            semantic_weight=0.0,
            skills_weight=1.0,
            experience_weight=0.0,
            salary_weight=0.0,
            location_weight=0.0,
        )
        job = _job(skills_required="Python, Django")
        result = score_job(job, _profile(skills=["Python"]), config=config, today=TODAY)
        assert result.overall_score == 50

    def test_default_semantic_from_config(self) -> None:
        config = ScoringConfig(default_semantic_score=40)
        assert score_job(_job(), _profile(), config=config).semantic_score == 40

    @pytest.mark.parametrize("skills_required,user_skills,semantic", [
        (None, [], 0),
        ("Python", ["Python"], 100),
        ("Rust, Go, C++", ["Java"], 55),
        ("JS, TS, Node", ["JavaScript"], 80),
    ])
    def test_overall_is_rounded_weighted_sum(
        self, skills_required: str | None, user_skills: list[str], semantic: float,
    ) -> None:
        result = score_job(
            _job(skills_required=skills_required),
            _profile(skills=user_skills),
            semantic_score=semantic,
            today=TODAY,
        )
        config = ScoringConfig()
        expected = round_half_up(
            result.semantic_score * config.semantic_weight
            + result.skill_match_score * config.skills_weight
            + result.experience_match_score * config.experience_weight
            + result.salary_match_score * config.salary_weight
            + result.location_match_score * config.location_weight
        )
        assert result.overall_score == expected
        assert 0 <= result.overall_score <= 100

    def test_internal_error_gives_neutral_breakdown(self) -> None:
        with patch(
            "jobmatch.pipeline.scorer.calculate_skill_match",
            side_effect=RuntimeError("boom"),
        ):
            result = score_job(_job(), _profile(), today=TODAY)
        assert result == neutral_breakdown()
        assert result.overall_score == 50
        assert result.analyses.experience == "Unable to analyze"
        assert result.cons == ["Error occurred during scoring"]
        assert result.matched_skills == []

    def test_malformed_profile_gives_neutral_breakdown(self) -> None:
        profile = UserProfile.model_construct(user_id="alice", skills=[], experiences=[None],
                                              target=None)
        result = score_job(_job(), profile, today=TODAY)
        assert result == neutral_breakdown()
