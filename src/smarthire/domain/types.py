"""Typed values exchanged between the assistant core and the recruiting domain."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CallerIdentity(BaseModel):
    """Who is talking to the assistant, as resolved by the boundary layer."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Literal["candidate", "recruiter"]
    candidate_id: str | None = None
    recruiter_id: str | None = None


class NavigationContext(BaseModel):
    """Where the caller is in the web client when sending a message."""

    page: str | None = None
    section: str | None = None
    action: str | None = None


# --- Profile summary ---


class PersonIdentity(BaseModel):
    first_name: str
    last_name: str
    email: str
    headline: str | None = None
    location: str | None = None


class SkillLevel(BaseModel):
    name: str
    level: int = Field(ge=1, le=10)


class LanguageLevel(BaseModel):
    name: str
    level: int = Field(ge=1, le=10)


class ExperienceEntry(BaseModel):
    title: str
    company: str
    started_on: date | None = None


class EducationEntry(BaseModel):
    title: str
    institution: str
    status: str | None = None


class ApplicationBrief(BaseModel):
    job_title: str
    company: str
    compatibility: float | None = None


class PostedJobBrief(BaseModel):
    title: str
    status: str
    applications: int = 0


class ProfileSummary(BaseModel):
    """Bounded snapshot of the caller's profile used in the briefing."""

    role: Literal["candidate", "recruiter"]
    identity: PersonIdentity
    skills: list[SkillLevel] = Field(default_factory=list)
    languages: list[LanguageLevel] = Field(default_factory=list)
    experiences: list[ExperienceEntry] = Field(default_factory=list)
    education: list[EducationEntry] = Field(default_factory=list)
    recent_applications: list[ApplicationBrief] = Field(default_factory=list)

    # Recruiter only
    company: str | None = None
    company_area: str | None = None
    position: str | None = None
    posted_jobs: list[PostedJobBrief] = Field(default_factory=list)


# --- Jobs and applications ---


class JobSearchCriteria(BaseModel):
    query: str | None = None
    modality: str | None = None
    min_salary: int | None = None
    page: int = 1
    page_size: int = 5


class JobListing(BaseModel):
    id: str
    title: str
    company: str
    description: str | None = None
    modality: str | None = None
    schedule: str | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    status: str
    created_at: datetime


class JobPage(BaseModel):
    items: list[JobListing]
    page: int
    page_size: int
    total: int


class ApplicationRecord(BaseModel):
    id: str
    job_id: str
    job_title: str
    company: str
    status: str
    compatibility: float | None = None
    created_at: datetime
