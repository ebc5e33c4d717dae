"""Dependency providers for the API routes.

Components are built lazily and shared by every request; tests replace
them through app.dependency_overrides.
"""

from fastapi import Depends, Header

from smarthire import config
from smarthire.agent import (
    AnthropicModelClient,
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    ToolExecutor,
    TurnOrchestrator,
)
from smarthire.db import async_session
from smarthire.domain import CallerIdentity, IdentityResolver, SqlRecruitingService

_store: SessionStore | None = None
_recruiting: SqlRecruitingService | None = None
_orchestrator: TurnOrchestrator | None = None


def get_store() -> SessionStore:
    global _store
    if _store is None:
        if config.SESSION_BACKEND == "redis":
            _store = RedisSessionStore(config.REDIS_URL, ttl_seconds=config.SESSION_TTL_SECONDS)
        else:
            _store = InMemorySessionStore(ttl_seconds=config.SESSION_TTL_SECONDS)
    return _store


def get_recruiting() -> SqlRecruitingService:
    global _recruiting
    if _recruiting is None:
        _recruiting = SqlRecruitingService(async_session)
    return _recruiting


def get_orchestrator() -> TurnOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        recruiting = get_recruiting()
        _orchestrator = TurnOrchestrator(
            store=get_store(),
            model=AnthropicModelClient(
                model=config.ANTHROPIC_MODEL,
                max_tokens=config.MODEL_MAX_TOKENS,
                temperature=config.MODEL_TEMPERATURE,
            ),
            executor=ToolExecutor(
                job_search=recruiting,
                apply_service=recruiting,
                application_listing=recruiting,
            ),
            profile_lookup=recruiting,
        )
    return _orchestrator


async def get_caller(
    x_user_id: str | None = Header(default=None),
    identities: IdentityResolver = Depends(get_recruiting),
) -> CallerIdentity | None:
    """
    Resolve the caller from the X-User-Id header.

    Authentication happens upstream; an absent or unknown id is treated as
    an anonymous caller.
    """
    if not x_user_id:
        return None
    return await identities.resolve_identity(x_user_id)
