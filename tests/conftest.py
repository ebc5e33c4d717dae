"""
Test fixtures for the SmartHire assistant.
"""

import asyncio
import os
from datetime import date, datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test database before importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_AUTO_CREATE"] = "false"

from smarthire.agent import (
    InMemorySessionStore,
    ModelClient,
    ModelReply,
    ToolExecutor,
    TurnOrchestrator,
)
from smarthire.api.deps import get_orchestrator, get_recruiting
from smarthire.db import (
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
from smarthire.domain import SqlRecruitingService
from smarthire.main import app


class ScriptedModel(ModelClient):
    """
    Model double that plays back queued replies.

    Queue ModelReply objects (or exceptions to raise). Once the queue is
    empty every call answers "ok". Each call records a copy of the
    transcript it saw and the names of the tools it was offered.
    """

    def __init__(self, *replies, delay: float = 0.0):
        self.replies = list(replies)
        self.delay = delay
        self.calls: list[tuple[list, list[str]]] = []

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    async def complete(self, transcript, tools):
        self.calls.append((list(transcript), [tool.name for tool in tools]))
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)
        if not self.replies:
            return ModelReply(text="ok")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seed(sessionmaker):
    """
    Seed a small recruiting dataset.

    - Ana Torres (candidate) already applied to the Data Analyst posting
    - Luis Ramos (recruiter at Acme) owns every posting
    - One open remote job, one open hybrid job, one closed job
    """
    async with sessionmaker() as db:
        db.add_all([
            User(id="u-cand", first_name="Ana", last_name="Torres", email="ana@example.com", role="candidate"),
            User(id="u-rec", first_name="Luis", last_name="Ramos", email="luis@acme.com", role="recruiter"),
            User(id="u-plain", first_name="Sin", last_name="Rol", email="plain@example.com", role="candidate"),
            Company(id="comp-1", name="Acme", area="Software"),
        ])
        await db.flush()
        db.add_all([
            Candidate(
                id="cand-1",
                user_id="u-cand",
                headline="Backend developer",
                location="Lima",
                skills=[
                    CandidateSkill(name="Docker", level=5),
                    CandidateSkill(name="Python", level=9),
                    CandidateSkill(name="SQL", level=7),
                ],
                languages=[
                    CandidateLanguage(name="Spanish", level=10),
                    CandidateLanguage(name="English", level=8),
                ],
                experiences=[
                    Experience(title="Intern", company="Initech", started_on=date(2019, 1, 1)),
                    Experience(title="Developer", company="Globex", started_on=date(2022, 3, 1)),
                ],
                education=[
                    Education(title="Systems Engineering", institution="UNI", status="Graduated"),
                ],
            ),
            Recruiter(id="rec-1", user_id="u-rec", company_id="comp-1", position="Talent Lead"),
        ])
        await db.flush()
        db.add_all([
            Job(
                id="job-backend",
                company_id="comp-1",
                recruiter_id="rec-1",
                title="Backend Developer",
                description="Python services and APIs",
                modality="Remote",
                schedule="Full-time",
                salary_min=3000,
                salary_max=4500,
                status="OPEN",
                created_at=datetime(2024, 5, 3),
            ),
            Job(
                id="job-data",
                company_id="comp-1",
                recruiter_id="rec-1",
                title="Data Analyst",
                description="SQL reporting",
                modality="Hybrid",
                schedule="Full-time",
                salary_min=2000,
                salary_max=3000,
                status="OPEN",
                created_at=datetime(2024, 5, 2),
            ),
            Job(
                id="job-closed",
                company_id="comp-1",
                recruiter_id="rec-1",
                title="Frontend Developer",
                description="React",
                modality="Remote",
                status="CLOSED",
                created_at=datetime(2024, 5, 1),
            ),
        ])
        await db.flush()
        db.add(Application(
            id="app-1",
            candidate_id="cand-1",
            job_id="job-data",
            compatibility=82.0,
            created_at=datetime(2024, 5, 10),
        ))
        await db.commit()


@pytest.fixture
def recruiting(sessionmaker):
    return SqlRecruitingService(sessionmaker)


@pytest.fixture
def store():
    return InMemorySessionStore(ttl_seconds=1800)


@pytest.fixture
def model():
    return ScriptedModel()


@pytest.fixture
def orchestrator(store, model, recruiting):
    return TurnOrchestrator(
        store=store,
        model=model,
        executor=ToolExecutor(
            job_search=recruiting,
            apply_service=recruiting,
            application_listing=recruiting,
        ),
        profile_lookup=recruiting,
    )


@pytest.fixture
async def client(orchestrator, recruiting):
    """Async HTTP client for testing FastAPI app."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_recruiting] = lambda: recruiting
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
