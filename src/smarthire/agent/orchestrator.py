"""
Turn orchestration for the assistant.

One turn runs:
1. Resolve (or create) the session and brief it if it is new
2. First model call with the tools the caller may use
3. At most one tool round, results tagged with their tool call ids
4. Second model call with no tools offered
5. Persist the final reply and refresh session activity

Turns on the same session id are serialized with the store's per-session
lock. A started turn always runs to completion, even if the caller goes away.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum, auto

from smarthire.agent.briefing import PLATFORM_KNOWLEDGE, compose_system_briefing
from smarthire.agent.executor import ToolExecutor
from smarthire.agent.messages import Message, Role, Session, ToolCall, utcnow
from smarthire.agent.model import ModelClient
from smarthire.agent.registry import declarations
from smarthire.agent.store import SessionStore
from smarthire.domain.ports import ProfileLookup
from smarthire.domain.types import CallerIdentity, NavigationContext, ProfileSummary
from smarthire.errors import ErrorKind

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I could not generate a response."
UNRECORDED_RESULT = json.dumps({
    "error": ErrorKind.INTERNAL.value,
    "message": "The result of this operation was not recorded.",
})


class TurnState(Enum):
    START = auto()
    BRIEFED = auto()
    MODEL_1 = auto()
    NO_TOOLS = auto()
    TOOLS_REQUESTED = auto()
    TOOL_ROUND = auto()
    MODEL_2 = auto()
    DONE = auto()


_TRANSITIONS: dict[TurnState, frozenset[TurnState]] = {
    TurnState.START: frozenset({TurnState.BRIEFED}),
    TurnState.BRIEFED: frozenset({TurnState.MODEL_1}),
    TurnState.MODEL_1: frozenset({TurnState.NO_TOOLS, TurnState.TOOLS_REQUESTED}),
    TurnState.NO_TOOLS: frozenset({TurnState.DONE}),
    TurnState.TOOLS_REQUESTED: frozenset({TurnState.TOOL_ROUND}),
    TurnState.TOOL_ROUND: frozenset({TurnState.MODEL_2}),
    TurnState.MODEL_2: frozenset({TurnState.DONE}),
    TurnState.DONE: frozenset(),
}


class IllegalTransition(RuntimeError):
    pass


def _unique_calls(session_id: str, calls: list[ToolCall]) -> list[ToolCall]:
    """Keep the first call for each id; a repeated id would have two results."""
    seen: set[str] = set()
    unique = []
    for call in calls:
        if call.id in seen:
            logger.warning(f"[{session_id}] dropping repeated tool call id {call.id} ({call.name})")
            continue
        seen.add(call.id)
        unique.append(call)
    return unique


class Turn:
    """State machine of one turn in flight."""

    def __init__(self, session: Session):
        self.session = session
        self.state = TurnState.START
        self.tool_calls_made = 0

    def advance(self, new_state: TurnState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise IllegalTransition(f"{self.state.name} -> {new_state.name}")
        logger.debug(f"[{self.session.session_id}] {self.state.name} -> {new_state.name}")
        self.state = new_state


@dataclass
class TurnResult:
    session_id: str
    reply: str
    tool_calls_made: int = 0


class TurnOrchestrator:
    """Drives turns against the session store, the model and the tool executor."""

    def __init__(
        self,
        store: SessionStore,
        model: ModelClient,
        executor: ToolExecutor,
        profile_lookup: ProfileLookup,
        static_knowledge: str = PLATFORM_KNOWLEDGE,
    ):
        self.store = store
        self.model = model
        self.executor = executor
        self.profile_lookup = profile_lookup
        self.static_knowledge = static_knowledge
        self._inflight: set[asyncio.Task] = set()

    async def submit_turn(
        self,
        message: str,
        session_id: str | None = None,
        navigation: NavigationContext | None = None,
        caller: CallerIdentity | None = None,
    ) -> TurnResult:
        """Run one turn and return the final reply.

        The turn runs in its own task and is shielded: cancelling the caller
        abandons only the response, never a half-done tool round.

        Raises:
            ProviderFailure: if a model call fails. The user message stays in
                the transcript so a retry continues the same context.
        """
        task = asyncio.create_task(self._run_turn(message, session_id, navigation, caller))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def get_history(self, session_id: str) -> list[Message]:
        """The conversation as the caller saw it: user messages and assistant text.

        Tool results and tool-call bookkeeping stay internal.
        """
        return [
            m for m in await self.store.history(session_id)
            if m.role == Role.USER or (m.role == Role.ASSISTANT and not m.tool_calls)
        ]

    async def clear_session(self, session_id: str) -> bool:
        """Delete a session, waiting for any in-flight turn on it to finish.

        Returns False if it did not exist or had expired.
        """
        async with self.store.lock(session_id):
            return await self.store.delete(session_id)

    async def _run_turn(
        self,
        message: str,
        session_id: str | None,
        navigation: NavigationContext | None,
        caller: CallerIdentity | None,
    ) -> TurnResult:
        if session_id:
            async with self.store.lock(session_id):
                return await self._run_locked(message, session_id, navigation, caller)
        return await self._run_locked(message, None, navigation, caller)

    async def _run_locked(
        self,
        message: str,
        session_id: str | None,
        navigation: NavigationContext | None,
        caller: CallerIdentity | None,
    ) -> TurnResult:
        # START
        session, is_new = await self.store.get_or_create(session_id)
        turn = Turn(session)
        self._settle_unanswered_tool_calls(session)

        # BRIEFED
        if not session.transcript:
            profile = await self._lookup_profile(caller)
            briefing = compose_system_briefing(self.static_knowledge, profile, navigation)
            session.append(Message.system(briefing))
        turn.advance(TurnState.BRIEFED)

        session.append(Message.user(message))
        await self.store.put(session)

        # MODEL_1
        turn.advance(TurnState.MODEL_1)
        first = await self.model.complete(session.transcript, declarations(caller is not None))

        if not first.has_tool_calls:
            turn.advance(TurnState.NO_TOOLS)
            final_text = first.text
        else:
            turn.advance(TurnState.TOOLS_REQUESTED)
            calls = _unique_calls(session.session_id, first.tool_calls)
            session.append(Message.assistant(first.text, calls))

            # TOOL_ROUND
            turn.advance(TurnState.TOOL_ROUND)
            for call in calls:
                logger.info(f"[{session.session_id}] tool call {call.name} ({call.id})")
                result = await self.executor.execute(call.name, call.arguments, caller)
                session.append(Message.tool(call, result.to_content(), is_error=not result.ok))
                turn.tool_calls_made += 1
            await self.store.put(session)

            # MODEL_2
            turn.advance(TurnState.MODEL_2)
            second = await self.model.complete(session.transcript, [])
            if second.has_tool_calls:
                logger.warning(
                    f"[{session.session_id}] ignoring {len(second.tool_calls)} tool calls "
                    f"requested after the tool round"
                )
            final_text = second.text

        # DONE
        reply = final_text.strip() or FALLBACK_REPLY
        session.append(Message.assistant(reply))
        turn.advance(TurnState.DONE)
        session.last_active_at = utcnow()
        await self.store.put(session)

        logger.info(
            f"[{session.session_id}] turn done (new_session={is_new}, tool_calls={turn.tool_calls_made})"
        )
        return TurnResult(session_id=session.session_id, reply=reply, tool_calls_made=turn.tool_calls_made)

    async def _lookup_profile(self, caller: CallerIdentity | None) -> ProfileSummary | None:
        if caller is None:
            return None
        try:
            return await self.profile_lookup.lookup_profile(caller)
        except Exception:
            # The briefing is still useful without the profile block
            logger.exception(f"Profile lookup failed for user {caller.user_id}")
            return None

    def _settle_unanswered_tool_calls(self, session: Session) -> None:
        """Close a tool-call group left open by an interrupted turn."""
        pending = session.pending_tool_call_ids()
        if not pending:
            return
        requested = next(
            m for m in reversed(session.transcript)
            if m.role == Role.ASSISTANT and m.tool_calls
        )
        for call in requested.tool_calls:
            if call.id in pending:
                session.append(Message.tool(call, UNRECORDED_RESULT, is_error=True))
        logger.warning(f"[{session.session_id}] settled {len(pending)} unanswered tool calls")
