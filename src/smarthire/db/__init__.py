"""Database module for SmartHire."""

from .models import (
    Application,
    Base,
    Candidate,
    CandidateLanguage,
    CandidateSkill,
    Company,
    Education,
    Experience,
    Job,
    Recruiter,
    User,
)
from .session import DATABASE_URL, async_session, engine

__all__ = [
    "Application",
    "Base",
    "Candidate",
    "CandidateLanguage",
    "CandidateSkill",
    "Company",
    "Education",
    "Experience",
    "Job",
    "Recruiter",
    "User",
    "engine",
    "async_session",
    "DATABASE_URL",
]
