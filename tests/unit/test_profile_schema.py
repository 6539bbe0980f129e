"""Tests for ProfileData model and YAML loading."""

import json
from datetime import date
from pathlib import Path
from textwrap import dedent

import pytest
from pydantic import ValidationError

from jobmatch.profile.schema import ExperienceEntry, ProfileData, TargetPreferences


class TestTargetPreferences:
    def test_comma_text_split(self) -> None:
        t = TargetPreferences(roles="Backend Engineer, SRE", locations="Pune")
        assert t.roles == ["Backend Engineer", "SRE"]
        assert t.locations == ["Pune"]

    def test_remote_preference_normalized(self) -> None:
        assert TargetPreferences(remote_preference=" Remote ").remote_preference == "remote"

    def test_remote_preference_invalid(self) -> None:
        with pytest.raises(ValidationError, match="remote_preference"):
            TargetPreferences(remote_preference="sometimes")

    def test_salary_range_ordered(self) -> None:
        with pytest.raises(ValidationError, match="max_salary"):
            TargetPreferences(min_salary=200, max_salary=100)

    def test_to_job_target_stores_json(self) -> None:
        target = TargetPreferences(
            roles=["Backend Engineer"], locations=["Pune", "Remote"], min_salary=100,
        ).to_job_target()
        assert json.loads(target.target_roles or "") == ["Backend Engineer"]
        assert json.loads(target.preferred_locations or "") == ["Pune", "Remote"]
        assert target.min_salary == 100
        assert target.salary_currency == "INR"

    def test_empty_lists_stored_as_none(self) -> None:
        target = TargetPreferences().to_job_target()
        assert target.target_roles is None
        assert target.preferred_locations is None


class TestExperienceEntry:
    def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExperienceEntry(start_date=date(2022, 1, 1), end_date=date(2021, 1, 1))

    def test_current_role(self) -> None:
        e = ExperienceEntry(start_date=date(2022, 1, 1), is_current=True)
        assert e.end_date is None


class TestProfileData:
    def test_skills_deduped_case_insensitive(self) -> None:
        p = ProfileData(skills=["Python", "python", " Go ", ""])
        assert p.skills == ["Python", "Go"]

    def test_to_user_profile(self) -> None:
        p = ProfileData(
            skills=["Python"],
            experiences=[ExperienceEntry(title="Dev", start_date=date(2020, 1, 1))],
            targets=TargetPreferences(roles=["Dev"], remote_preference="any"),
        )
        profile = p.to_user_profile("alice")
        assert profile.user_id == "alice"
        assert profile.skills == ["Python"]
        assert profile.experiences[0].start_date == date(2020, 1, 1)
        assert profile.target is not None
        assert profile.target.remote_preference == "any"

    def test_no_targets(self) -> None:
        assert ProfileData().to_user_profile("alice").target is None

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "profile.yaml"
        path.write_text(dedent("""\
            skills: [Python, Django]
            experiences:
              - title: Engineer
                company: Acme
                start_date: 2019-07-01
                end_date: 2022-03-31
            targets:
              roles: Backend Engineer, Python Developer
              locations: [Bangalore]
              remote_preference: hybrid
              min_salary: 2500000
        """))
        p = ProfileData.from_yaml(path)
        assert p.skills == ["Python", "Django"]
        assert p.experiences[0].end_date == date(2022, 3, 31)
        assert p.targets is not None
        assert p.targets.roles == ["Backend Engineer", "Python Developer"]
        assert p.targets.locations == ["Bangalore"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ProfileData.from_yaml(tmp_path / "missing.yaml")

    def test_example_profile_loads(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "profile.yaml"
        p = ProfileData.from_yaml(path)
        assert p.skills
        assert p.targets is not None
        assert p.targets.remote_preference == "any"
