"""Interfaces of the recruiting collaborators the assistant calls.

Implementations raise the domain errors from smarthire.errors
(DomainNotFound, DomainConflict, Forbidden) for expected failures.
"""

from typing import Protocol

from smarthire.domain.types import (
    ApplicationRecord,
    CallerIdentity,
    JobPage,
    JobSearchCriteria,
    ProfileSummary,
)


class IdentityResolver(Protocol):
    async def resolve_identity(self, user_id: str) -> CallerIdentity | None:
        ...


class ProfileLookup(Protocol):
    async def lookup_profile(self, caller: CallerIdentity) -> ProfileSummary | None:
        ...


class JobSearch(Protocol):
    async def search_jobs(self, criteria: JobSearchCriteria) -> JobPage:
        ...


class ApplyService(Protocol):
    async def apply(self, candidate_id: str, job_id: str) -> ApplicationRecord:
        ...


class ApplicationListing(Protocol):
    async def list_applications(self, candidate_id: str, limit: int = 10) -> list[ApplicationRecord]:
        ...
