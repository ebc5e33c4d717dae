"""Session stores for conversation transcripts."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import LockError

from smarthire.agent.messages import Message, Session, utcnow

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """
    Keyed, expiring store of conversation sessions.

    Backends implement get/put/remove/sweep_expired/lock; the rest of the
    contract is built on top of those.

    - Lazy creation: sessions are created on first use of an unknown id
    - Activity is refreshed explicitly with touch(), never on lookup
    - Unknown ids behave like expired ones: no errors, empty results
    - lock() serializes turns per session id, never across ids
    """

    def __init__(self, ttl_seconds: int = 1800):
        self.ttl = timedelta(seconds=ttl_seconds)

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        ...

    @abstractmethod
    async def put(self, session: Session) -> None:
        ...

    @abstractmethod
    async def remove(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def sweep_expired(self, now: datetime, ttl: timedelta) -> int:
        """Remove sessions idle for longer than ttl. Returns count removed."""
        ...

    @abstractmethod
    def lock(self, session_id: str) -> AbstractAsyncContextManager[None]:
        """Exclusive per-session lock for the duration of one turn."""
        ...

    async def get_or_create(self, session_id: str | None = None) -> tuple[Session, bool]:
        """
        Return (session, is_new).

        An absent or unknown id yields a fresh session under a newly
        generated id. The new session is stored right away so a turn that
        fails after appending the user message can be retried.
        """
        if session_id:
            session = await self.get(session_id)
            if session is not None:
                if not self._is_expired(session, utcnow()):
                    return session, False
                await self.remove(session_id)

        session = Session(session_id=str(uuid4()))
        await self.put(session)
        logger.info(f"Created session {session.session_id}")
        return session, True

    async def delete(self, session_id: str) -> bool:
        """Remove a session. Returns whether a live session existed."""
        session = await self.get(session_id)
        if session is None:
            return False
        await self.remove(session_id)
        if self._is_expired(session, utcnow()):
            return False
        logger.info(f"Deleted session {session_id}")
        return True

    async def touch(self, session_id: str) -> None:
        session = await self.get(session_id)
        if session is None:
            return
        session.last_active_at = utcnow()
        await self.put(session)

    async def history(self, session_id: str) -> list[Message]:
        session = await self.get(session_id)
        if session is None or self._is_expired(session, utcnow()):
            return []
        return list(session.visible_history())

    def _is_expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_active_at > self.ttl


class InMemorySessionStore(SessionStore):
    """Process-local store. Suitable for a single server instance.

    Lock entries exist only while some turn holds or waits for them, so
    turns on arbitrary caller-supplied ids leave nothing behind.
    """

    def __init__(self, ttl_seconds: int = 1800):
        super().__init__(ttl_seconds)
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    async def put(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    async def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                del self._locks[session_id]

    async def sweep_expired(self, now: datetime, ttl: timedelta) -> int:
        expired = [
            sid for sid, session in self._sessions.items()
            if now - session.last_active_at > ttl and not self._is_busy(sid)
        ]
        for sid in expired:
            del self._sessions[sid]

        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)

    def _is_busy(self, session_id: str) -> bool:
        return session_id in self._locks


SESSION_PREFIX = "smarthire:session:"
LOCK_PREFIX = "smarthire:lock:"


class RedisSessionStore(SessionStore):
    """
    Redis-backed store shared by every server instance.

    Key pattern: smarthire:session:{session_id} holding the session as JSON.
    Keys carry EXPIREAT last_active_at + ttl so Redis drops idle sessions
    on its own; sweep_expired covers anything the native expiry missed.
    Turn locks are Redis locks, so serialization holds across instances.
    """

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int = 1800,
        lock_timeout_seconds: float = 300.0,
        redis: Redis | None = None,
    ):
        super().__init__(ttl_seconds)
        self._redis_url = redis_url
        self._redis = redis
        self.lock_timeout = lock_timeout_seconds

    async def _get_redis(self) -> Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = Redis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    def _make_key(self, session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    async def get(self, session_id: str) -> Session | None:
        redis = await self._get_redis()
        raw = await redis.get(self._make_key(session_id))
        if raw is None:
            return None
        return Session.from_dict(json.loads(raw))

    async def put(self, session: Session) -> None:
        redis = await self._get_redis()
        key = self._make_key(session.session_id)
        deadline = session.last_active_at + self.ttl
        await redis.set(key, json.dumps(session.to_dict()), exat=int(deadline.timestamp()) + 1)

    async def remove(self, session_id: str) -> None:
        redis = await self._get_redis()
        await redis.delete(self._make_key(session_id))

    def lock(self, session_id: str) -> AbstractAsyncContextManager[None]:
        # timeout releases the lock if the holder crashed mid-turn
        return _RedisTurnLock(self, f"{LOCK_PREFIX}{session_id}")

    async def sweep_expired(self, now: datetime, ttl: timedelta) -> int:
        redis = await self._get_redis()
        removed = 0
        async for key in redis.scan_iter(match=f"{SESSION_PREFIX}*"):
            raw = await redis.get(key)
            if raw is None:
                continue
            session = Session.from_dict(json.loads(raw))
            if now - session.last_active_at <= ttl:
                continue
            if await redis.exists(f"{LOCK_PREFIX}{session.session_id}"):
                continue
            removed += await redis.delete(key)
        if removed:
            logger.info(f"Swept {removed} expired sessions")
        return removed

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None


class _RedisTurnLock(AbstractAsyncContextManager):
    """Defers Redis connection setup until the lock is entered."""

    def __init__(self, store: RedisSessionStore, name: str):
        self._store = store
        self._name = name
        self._lock = None

    async def __aenter__(self) -> None:
        redis = await self._store._get_redis()
        self._lock = redis.lock(self._name, timeout=self._store.lock_timeout)
        await self._lock.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self._lock.release()
        except LockError as e:
            # Held past lock_timeout; the turn itself is already persisted
            logger.warning(f"Lost turn lock {self._name}: {e}")


class SessionSweeper:
    """Background task that removes expired sessions every ttl/3."""

    def __init__(self, store: SessionStore):
        self.store = store
        self.interval = store.ttl.total_seconds() / 3
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.store.sweep_expired(utcnow(), self.store.ttl)
            except Exception:
                logger.exception("Session sweep failed")
