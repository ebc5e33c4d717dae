"""SQLAlchemy-backed recruiting collaborators.

Each call opens its own short-lived session, so calls are independent of
any request-scoped session and safe to run from different tasks.
"""

import logging
from uuid import uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from smarthire.db import Application, Candidate, Job, Recruiter, User
from smarthire.domain.types import (
    ApplicationBrief,
    ApplicationRecord,
    CallerIdentity,
    EducationEntry,
    ExperienceEntry,
    JobListing,
    JobPage,
    JobSearchCriteria,
    LanguageLevel,
    PersonIdentity,
    PostedJobBrief,
    ProfileSummary,
    SkillLevel,
)
from smarthire.errors import DomainConflict, DomainNotFound

logger = logging.getLogger(__name__)

# Upper bounds on what a profile lookup pulls from the database
RECENT_APPLICATIONS = 5
RECENT_POSTED_JOBS = 5


def _to_listing(job: Job) -> JobListing:
    return JobListing(
        id=job.id,
        title=job.title,
        company=job.company.name,
        description=job.description,
        modality=job.modality,
        schedule=job.schedule,
        salary_min=job.salary_min,
        salary_max=job.salary_max,
        status=job.status,
        created_at=job.created_at,
    )


def _to_record(application: Application) -> ApplicationRecord:
    return ApplicationRecord(
        id=application.id,
        job_id=application.job_id,
        job_title=application.job.title,
        company=application.job.company.name,
        status=application.status,
        compatibility=application.compatibility,
        created_at=application.created_at,
    )


class SqlRecruitingService:
    """Identity, profile, job search and application operations over SQL."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def resolve_identity(self, user_id: str) -> CallerIdentity | None:
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(User)
                .where(User.id == user_id)
                .options(selectinload(User.candidate), selectinload(User.recruiter))
            )
            user = result.scalar_one_or_none()
            if user is None:
                return None

            if user.candidate is not None:
                return CallerIdentity(user_id=user.id, role="candidate", candidate_id=user.candidate.id)
            if user.recruiter is not None:
                return CallerIdentity(user_id=user.id, role="recruiter", recruiter_id=user.recruiter.id)
            return None

    async def lookup_profile(self, caller: CallerIdentity) -> ProfileSummary | None:
        async with self.sessionmaker() as db:
            if caller.candidate_id:
                return await self._candidate_profile(db, caller.candidate_id)
            if caller.recruiter_id:
                return await self._recruiter_profile(db, caller.recruiter_id)
            return None

    async def _candidate_profile(self, db: AsyncSession, candidate_id: str) -> ProfileSummary | None:
        result = await db.execute(
            select(Candidate)
            .where(Candidate.id == candidate_id)
            .options(
                selectinload(Candidate.user),
                selectinload(Candidate.skills),
                selectinload(Candidate.languages),
                selectinload(Candidate.experiences),
                selectinload(Candidate.education),
            )
        )
        candidate = result.scalar_one_or_none()
        if candidate is None:
            return None

        applications = await db.execute(
            select(Application)
            .where(Application.candidate_id == candidate_id)
            .options(selectinload(Application.job).selectinload(Job.company))
            .order_by(Application.created_at.desc(), Application.id)
            .limit(RECENT_APPLICATIONS)
        )

        return ProfileSummary(
            role="candidate",
            identity=PersonIdentity(
                first_name=candidate.user.first_name,
                last_name=candidate.user.last_name,
                email=candidate.user.email,
                headline=candidate.headline,
                location=candidate.location,
            ),
            skills=[SkillLevel(name=s.name, level=s.level) for s in candidate.skills],
            languages=[LanguageLevel(name=lang.name, level=lang.level) for lang in candidate.languages],
            experiences=[
                ExperienceEntry(title=e.title, company=e.company, started_on=e.started_on)
                for e in candidate.experiences
            ],
            education=[
                EducationEntry(title=e.title, institution=e.institution, status=e.status)
                for e in candidate.education
            ],
            recent_applications=[
                ApplicationBrief(
                    job_title=a.job.title,
                    company=a.job.company.name,
                    compatibility=a.compatibility,
                )
                for a in applications.scalars()
            ],
        )

    async def _recruiter_profile(self, db: AsyncSession, recruiter_id: str) -> ProfileSummary | None:
        result = await db.execute(
            select(Recruiter)
            .where(Recruiter.id == recruiter_id)
            .options(selectinload(Recruiter.user), selectinload(Recruiter.company))
        )
        recruiter = result.scalar_one_or_none()
        if recruiter is None:
            return None

        application_count = (
            select(func.count(Application.id))
            .where(Application.job_id == Job.id)
            .correlate(Job)
            .scalar_subquery()
        )
        jobs = await db.execute(
            select(Job.title, Job.status, application_count)
            .where(Job.recruiter_id == recruiter_id)
            .order_by(Job.created_at.desc(), Job.id)
            .limit(RECENT_POSTED_JOBS)
        )

        return ProfileSummary(
            role="recruiter",
            identity=PersonIdentity(
                first_name=recruiter.user.first_name,
                last_name=recruiter.user.last_name,
                email=recruiter.user.email,
            ),
            company=recruiter.company.name,
            company_area=recruiter.company.area,
            position=recruiter.position,
            posted_jobs=[
                PostedJobBrief(title=title, status=status, applications=count)
                for title, status, count in jobs.all()
            ],
        )

    async def search_jobs(self, criteria: JobSearchCriteria) -> JobPage:
        filters = [Job.status == "OPEN"]
        if criteria.query:
            pattern = f"%{criteria.query}%"
            filters.append(or_(Job.title.ilike(pattern), Job.description.ilike(pattern)))
        if criteria.modality:
            filters.append(func.lower(Job.modality) == criteria.modality.lower())
        if criteria.min_salary is not None:
            filters.append(Job.salary_max >= criteria.min_salary)

        async with self.sessionmaker() as db:
            total = await db.scalar(select(func.count(Job.id)).where(*filters))
            result = await db.execute(
                select(Job)
                .where(*filters)
                .options(selectinload(Job.company))
                .order_by(Job.created_at.desc(), Job.id)
                .offset((criteria.page - 1) * criteria.page_size)
                .limit(criteria.page_size)
            )
            items = [_to_listing(job) for job in result.scalars()]

        return JobPage(items=items, page=criteria.page, page_size=criteria.page_size, total=total or 0)

    async def apply(self, candidate_id: str, job_id: str) -> ApplicationRecord:
        async with self.sessionmaker() as db:
            job = await db.get(Job, job_id)
            if job is None:
                raise DomainNotFound("Job not found")
            if job.status == "CLOSED":
                raise DomainConflict("The job is closed")

            existing = await db.scalar(
                select(Application.id).where(
                    Application.candidate_id == candidate_id,
                    Application.job_id == job_id,
                )
            )
            if existing is not None:
                raise DomainConflict("You have already applied to this job")

            # Compatibility is filled in later by the matching service
            application = Application(id=str(uuid4()), candidate_id=candidate_id, job_id=job_id)
            db.add(application)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise DomainConflict("You have already applied to this job")

            result = await db.execute(
                select(Application)
                .where(Application.id == application.id)
                .options(selectinload(Application.job).selectinload(Job.company))
                .execution_options(populate_existing=True)
            )
            record = _to_record(result.scalar_one())

        logger.info(f"Candidate {candidate_id} applied to job {job_id}")
        return record

    async def list_applications(self, candidate_id: str, limit: int = 10) -> list[ApplicationRecord]:
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(Application)
                .where(Application.candidate_id == candidate_id)
                .options(selectinload(Application.job).selectinload(Job.company))
                .order_by(Application.created_at.desc(), Application.id)
                .limit(limit)
            )
            return [_to_record(a) for a in result.scalars()]
