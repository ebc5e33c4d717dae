"""
Error taxonomy for the assistant core.

Every failure that can happen while serving a turn maps to one ErrorKind.
Tool failures are turned into structured payloads and handed back to the
model; only ProviderFailure and unexpected faults reach the HTTP layer, and
even then callers only see a generic message.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Categories of assistant failures."""

    INVALID_ARGUMENTS = "InvalidArguments"
    UNKNOWN_TOOL = "UnknownTool"
    DOMAIN_CONFLICT = "DomainConflict"
    DOMAIN_NOT_FOUND = "DomainNotFound"
    FORBIDDEN = "Forbidden"
    UNAUTHENTICATED = "Unauthenticated"
    PROVIDER_FAILURE = "ProviderFailure"
    INTERNAL = "Internal"


class AssistantError(Exception):
    """Base exception for all assistant errors.

    Attributes:
        kind: The ErrorKind categorizing this error
        message: Human-readable message, safe to show to the model
        details: Optional extra context for logs
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_payload(self) -> dict[str, Any]:
        """Structured form fed back to the model as a tool result."""
        return {"error": self.kind.value, "message": self.message}


class InvalidArguments(AssistantError):
    """Tool call arguments do not match the declared schema."""

    kind = ErrorKind.INVALID_ARGUMENTS


class UnknownTool(AssistantError):
    """The model asked for a tool that is not declared."""

    kind = ErrorKind.UNKNOWN_TOOL


class DomainConflict(AssistantError):
    """A collaborator refused the operation because of current state."""

    kind = ErrorKind.DOMAIN_CONFLICT


class DomainNotFound(AssistantError):
    """A collaborator could not find the referenced entity."""

    kind = ErrorKind.DOMAIN_NOT_FOUND


class Forbidden(AssistantError):
    """The caller is authenticated but not allowed to do this."""

    kind = ErrorKind.FORBIDDEN


class Unauthenticated(AssistantError):
    """A tool that needs a caller identity was invoked without one."""

    kind = ErrorKind.UNAUTHENTICATED


class ProviderFailure(AssistantError):
    """The language model call failed (transport or provider error)."""

    kind = ErrorKind.PROVIDER_FAILURE


class TranscriptViolation(AssistantError):
    """An append would break the transcript ordering contract."""

    kind = ErrorKind.INTERNAL
