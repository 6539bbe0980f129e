"""ProfileData model for config/profile.yaml."""

import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from jobmatch.core.schemas import ExperienceRecord, JobTarget, UserProfile

ALLOWED_REMOTE_PREFERENCES = {"remote", "any", "onsite", "hybrid"}


class ExperienceEntry(BaseModel):
    """One role. `title` and `company` are informational only."""

    title: str = ""
    company: str = ""
    start_date: date
    end_date: date | None = None
    is_current: bool = False

    @model_validator(mode="after")
    def end_after_start(self) -> "ExperienceEntry":
        if self.end_date is not None and self.end_date < self.start_date:
            msg = f"end_date {self.end_date} is before start_date {self.start_date}"
            raise ValueError(msg)
        return self


class TargetPreferences(BaseModel):
    """Job search preferences. Roles and locations accept a list or comma text."""

    roles: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    remote_preference: str | None = None
    min_salary: float | None = Field(default=None, ge=0)
    max_salary: float | None = Field(default=None, ge=0)
    salary_currency: str = "INR"

    @field_validator("roles", "locations", mode="before")
    @classmethod
    def split_text(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("remote_preference")
    @classmethod
    def remote_preference_allowed(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.lower().strip()
        if v not in ALLOWED_REMOTE_PREFERENCES:
            msg = f"remote_preference must be one of {sorted(ALLOWED_REMOTE_PREFERENCES)}, got '{v}'"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def salary_range_ordered(self) -> "TargetPreferences":
        if (
            self.min_salary is not None
            and self.max_salary is not None
            and self.max_salary < self.min_salary
        ):
            msg = "max_salary must be >= min_salary"
            raise ValueError(msg)
        return self

    def to_job_target(self) -> JobTarget:
        """Stored form: roles and locations as JSON arrays."""
        return JobTarget(
            target_roles=json.dumps(self.roles) if self.roles else None,
            preferred_locations=json.dumps(self.locations) if self.locations else None,
            remote_preference=self.remote_preference,
            min_salary=self.min_salary,
            max_salary=self.max_salary,
            salary_currency=self.salary_currency,
        )


class ProfileData(BaseModel):
    """A user's skills, work history and targets as written in YAML."""

    skills: list[str] = Field(default_factory=list)
    experiences: list[ExperienceEntry] = Field(default_factory=list)
    targets: TargetPreferences | None = None

    @field_validator("skills")
    @classmethod
    def dedupe_skills(cls, v: list[str]) -> list[str]:
        seen: dict[str, str] = {}
        for skill in v:
            name = skill.strip()
            if name and name.lower() not in seen:
                seen[name.lower()] = name
        return list(seen.values())

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ProfileData":
        """Load profile from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Profile file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

    def to_user_profile(self, user_id: str) -> UserProfile:
        return UserProfile(
            user_id=user_id,
            skills=self.skills,
            experiences=[
                ExperienceRecord(
                    start_date=e.start_date, end_date=e.end_date, is_current=e.is_current,
                )
                for e in self.experiences
            ],
            target=self.targets.to_job_target() if self.targets else None,
        )
