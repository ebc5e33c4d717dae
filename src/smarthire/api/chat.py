"""Assistant chat endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from smarthire.agent import Message, TurnOrchestrator
from smarthire.api.deps import get_caller, get_orchestrator
from smarthire.domain import CallerIdentity, NavigationContext
from smarthire.errors import ProviderFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

TURN_FAILED = "The assistant could not answer right now. Please try again."


# --- Schemas ---


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    session_id: str | None = None
    navigation_context: NavigationContext | None = None


class ChatResponse(BaseModel):
    session_id: str
    reply: str


class HistoryEntry(BaseModel):
    role: str
    content: str

    @classmethod
    def from_message(cls, message: Message) -> "HistoryEntry":
        return cls(role=message.role.value, content=message.content)


class ClearResponse(BaseModel):
    found: bool


# --- Routes ---


@router.post("", response_model=ChatResponse)
async def submit_turn(
    data: ChatRequest,
    caller: CallerIdentity | None = Depends(get_caller),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Send a message to the assistant and get its reply."""
    try:
        result = await orchestrator.submit_turn(
            data.message,
            session_id=data.session_id,
            navigation=data.navigation_context,
            caller=caller,
        )
    except ProviderFailure:
        raise HTTPException(status_code=502, detail=TURN_FAILED)
    except Exception:
        logger.exception("Turn failed")
        raise HTTPException(status_code=500, detail=TURN_FAILED)

    return ChatResponse(session_id=result.session_id, reply=result.reply)


@router.get("/sessions/{session_id}/history", response_model=list[HistoryEntry])
async def get_history(
    session_id: str,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> list[HistoryEntry]:
    """User messages and assistant replies, oldest first. Unknown ids give []."""
    messages = await orchestrator.get_history(session_id)
    return [HistoryEntry.from_message(m) for m in messages]


@router.delete("/sessions/{session_id}", response_model=ClearResponse)
async def clear_session(
    session_id: str,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> ClearResponse:
    """Delete a session."""
    found = await orchestrator.clear_session(session_id)
    return ClearResponse(found=found)
