"""Recruiting domain: typed values, collaborator interfaces, SQL implementation."""

from .ports import ApplicationListing, ApplyService, IdentityResolver, JobSearch, ProfileLookup
from .sql import SqlRecruitingService
from .types import CallerIdentity, NavigationContext, ProfileSummary

__all__ = [
    "ApplicationListing",
    "ApplyService",
    "IdentityResolver",
    "JobSearch",
    "ProfileLookup",
    "SqlRecruitingService",
    "CallerIdentity",
    "NavigationContext",
    "ProfileSummary",
]
