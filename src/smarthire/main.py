"""SmartHire assistant server."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smarthire import config
from smarthire.agent import RedisSessionStore, SessionSweeper
from smarthire.api import router
from smarthire.api.deps import get_store
from smarthire.db import Base, engine
from smarthire.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)

    if config.DB_AUTO_CREATE:
        if engine.url.database and engine.url.drivername.startswith("sqlite"):
            Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    store = get_store()
    sweeper = SessionSweeper(store)
    sweeper.start()
    logger.info(f"Session store: {type(store).__name__}, ttl={config.SESSION_TTL_SECONDS}s")

    yield

    await sweeper.stop()
    if isinstance(store, RedisSessionStore):
        await store.close()
    await engine.dispose()


app = FastAPI(title="SmartHire Assistant", version="0.1.0", lifespan=lifespan)

# Allow frontend to connect
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
