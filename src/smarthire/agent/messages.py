"""Transcript data model: messages, tool calls and sessions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from smarthire.errors import TranscriptViolation


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""
    id: str
    name: str
    arguments: dict[str, Any]

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict) -> "ToolCall":
        return cls(id=data["id"], name=data["name"], arguments=dict(data.get("arguments") or {}))


@dataclass(frozen=True)
class Message:
    """One transcript entry.

    Assistant messages that request tools carry them in ``tool_calls``;
    tool messages carry the JSON result in ``content`` and point back at
    the request through ``tool_call_id``.
    """
    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    is_error: bool = False

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: list[ToolCall] | None = None) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls or ()))

    @classmethod
    def tool(cls, call: ToolCall, content: str, is_error: bool = False) -> "Message":
        return cls(
            role=Role.TOOL,
            content=content,
            tool_call_id=call.id,
            tool_name=call.name,
            is_error=is_error,
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
            data["tool_name"] = self.tool_name
            data["is_error"] = self.is_error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            role=Role(data["role"]),
            content=data.get("content", ""),
            tool_calls=tuple(ToolCall.from_dict(c) for c in data.get("tool_calls", [])),
            tool_call_id=data.get("tool_call_id"),
            tool_name=data.get("tool_name"),
            is_error=data.get("is_error", False),
        )


@dataclass
class Session:
    """A conversation transcript plus activity timestamps.

    The transcript is append-only. ``append`` rejects any entry that would
    break the ordering contract the model protocol relies on, so a
    malformed transcript cannot be built through this class.
    """
    session_id: str
    transcript: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_active_at: datetime = field(default_factory=utcnow)

    def append(self, message: Message) -> None:
        if message.role == Role.SYSTEM:
            if self.transcript:
                raise TranscriptViolation("system briefing can only be the first entry")
        elif message.role == Role.TOOL:
            if message.tool_call_id not in self.pending_tool_call_ids():
                raise TranscriptViolation(
                    "tool result does not answer a pending tool call",
                    details=f"tool_call_id={message.tool_call_id}",
                )
        elif self.pending_tool_call_ids():
            raise TranscriptViolation("previous tool calls are still unanswered")

        self.transcript.append(message)

    def pending_tool_call_ids(self) -> list[str]:
        """Ids requested by the trailing assistant tool-call group and not yet answered."""
        answered: set[str] = set()
        for message in reversed(self.transcript):
            if message.role == Role.TOOL:
                answered.add(message.tool_call_id)
                continue
            if message.role == Role.ASSISTANT and message.tool_calls:
                return [call.id for call in message.tool_calls if call.id not in answered]
            break
        return []

    def visible_history(self) -> list[Message]:
        """Transcript without the injected system briefing."""
        return [m for m in self.transcript if m.role != Role.SYSTEM]

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "transcript": [m.to_dict() for m in self.transcript],
            "created_at": self.created_at.isoformat(),
            "last_active_at": self.last_active_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            session_id=data["session_id"],
            transcript=[Message.from_dict(m) for m in data.get("transcript", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
            last_active_at=datetime.fromisoformat(data["last_active_at"]),
        )
