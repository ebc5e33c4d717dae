"""Conversational assistant core: sessions, briefing, tools and turn orchestration."""

from .executor import ToolExecutor, ToolResult
from .messages import Message, Role, Session, ToolCall
from .model import AnthropicModelClient, ModelClient, ModelReply
from .orchestrator import TurnOrchestrator, TurnResult, TurnState
from .store import InMemorySessionStore, RedisSessionStore, SessionStore, SessionSweeper

__all__ = [
    "ToolExecutor",
    "ToolResult",
    "Message",
    "Role",
    "Session",
    "ToolCall",
    "AnthropicModelClient",
    "ModelClient",
    "ModelReply",
    "TurnOrchestrator",
    "TurnResult",
    "TurnState",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionStore",
    "SessionSweeper",
]
