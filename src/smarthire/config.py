"""Runtime configuration read from the environment."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root before reading any variable
load_dotenv(Path(__file__).parent.parent.parent / ".env")

_default_db_path = Path(__file__).parent.parent.parent / "data" / "smarthire.db"

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{_default_db_path}")
DB_AUTO_CREATE = os.getenv("DB_AUTO_CREATE", "true").lower() in ("1", "true", "yes")

SESSION_BACKEND = os.getenv("SESSION_BACKEND", "memory")  # "memory" or "redis"
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "1800"))  # 30 minutes
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
MODEL_MAX_TOKENS = int(os.getenv("MODEL_MAX_TOKENS", "500"))
MODEL_TEMPERATURE = float(os.getenv("MODEL_TEMPERATURE", "0.7"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
