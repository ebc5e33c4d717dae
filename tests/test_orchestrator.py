"""
Tests for turn orchestration.
"""

import asyncio
import json

import pytest

from smarthire.agent import Message, ModelReply, Role, Session, ToolCall
from smarthire.agent.orchestrator import FALLBACK_REPLY, IllegalTransition, Turn, TurnState
from smarthire.domain.types import CallerIdentity, NavigationContext
from smarthire.errors import ProviderFailure

CANDIDATE = CallerIdentity(user_id="u-cand", role="candidate", candidate_id="cand-1")


def tool_reply(*calls: tuple[str, str, dict], text: str = "") -> ModelReply:
    return ModelReply(
        text=text,
        tool_calls=[ToolCall(id=cid, name=name, arguments=args) for cid, name, args in calls],
    )


@pytest.mark.asyncio
async def test_turn_without_tools(orchestrator, model, store):
    """No tool calls: one model call, user + assistant appended."""
    model.queue(ModelReply(text="  Hola, ¿en qué te ayudo?  "))

    result = await orchestrator.submit_turn("hola")

    assert result.reply == "Hola, ¿en qué te ayudo?"
    assert result.tool_calls_made == 0
    assert len(model.calls) == 1
    session = await store.get(result.session_id)
    assert [m.role for m in session.transcript] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]


@pytest.mark.asyncio
async def test_anonymous_caller_is_offered_no_tools(orchestrator, model):
    await orchestrator.submit_turn("hola")

    _, offered = model.calls[0]
    assert offered == []


@pytest.mark.asyncio
async def test_briefing_added_once_per_session(orchestrator, model, store, seed):
    first = await orchestrator.submit_turn(
        "hola", navigation=NavigationContext(page="jobs"), caller=CANDIDATE
    )
    await orchestrator.submit_turn("¿y ahora?", session_id=first.session_id, caller=CANDIDATE)

    session = await store.get(first.session_id)
    system_messages = [m for m in session.transcript if m.role == Role.SYSTEM]
    assert len(system_messages) == 1
    assert session.transcript[0].role == Role.SYSTEM
    assert "Ana Torres" in system_messages[0].content
    assert "- Page: jobs" in system_messages[0].content
    assert len(session.transcript) == 5


@pytest.mark.asyncio
async def test_tool_round_correlates_results(orchestrator, model, store, seed):
    """Each tool call gets exactly one result carrying its id, in request order."""
    model.queue(
        tool_reply(
            ("call-1", "search_jobs", {"query": "developer"}),
            ("call-2", "list_my_applications", {}),
        ),
        ModelReply(text="Encontré 2 vacantes."),
    )

    result = await orchestrator.submit_turn("busca trabajos", caller=CANDIDATE)

    assert result.reply == "Encontré 2 vacantes."
    assert result.tool_calls_made == 2
    session = await store.get(result.session_id)
    roles = [m.role for m in session.transcript]
    assert roles == [Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.TOOL, Role.TOOL, Role.ASSISTANT]
    assert [m.tool_call_id for m in session.transcript[3:5]] == ["call-1", "call-2"]
    search = json.loads(session.transcript[3].content)
    assert search["total"] == 1
    assert search["items"][0]["id"] == "job-backend"


@pytest.mark.asyncio
async def test_second_model_call_gets_results_and_no_tools(orchestrator, model, seed):
    model.queue(
        tool_reply(("call-1", "search_jobs", {})),
        ModelReply(text="listo"),
    )

    await orchestrator.submit_turn("busca", caller=CANDIDATE)

    (first_transcript, first_tools), (second_transcript, second_tools) = model.calls
    assert first_tools == ["search_jobs", "apply_to_job", "list_my_applications"]
    assert second_tools == []
    assert second_transcript[-1].role == Role.TOOL
    assert second_transcript[-1].tool_call_id == "call-1"


@pytest.mark.asyncio
async def test_tool_calls_in_second_reply_are_ignored(orchestrator, model, store, seed):
    """At most one tool round per turn."""
    model.queue(
        tool_reply(("call-1", "search_jobs", {})),
        tool_reply(("call-2", "apply_to_job", {"job_id": "job-backend"}), text="Aplicando..."),
    )

    result = await orchestrator.submit_turn("aplica", caller=CANDIDATE)

    assert len(model.calls) == 2
    assert result.reply == "Aplicando..."
    assert result.tool_calls_made == 1
    session = await store.get(result.session_id)
    assert all(m.tool_call_id != "call-2" for m in session.transcript)
    assert session.transcript[-1].tool_calls == ()


@pytest.mark.asyncio
async def test_empty_final_text_uses_fallback(orchestrator, model):
    model.queue(ModelReply(text="   "))

    result = await orchestrator.submit_turn("hola")

    assert result.reply == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_apply_conflict_is_fed_back_to_model(orchestrator, model, store, seed):
    """A domain conflict becomes a tool result, not a failed turn."""
    model.queue(
        tool_reply(("call-1", "apply_to_job", {"job_id": "job-data"})),
        ModelReply(text="Ya postulaste a esta vacante."),
    )

    result = await orchestrator.submit_turn("postula a Data Analyst", caller=CANDIDATE)

    assert result.reply == "Ya postulaste a esta vacante."
    session = await store.get(result.session_id)
    tool_message = session.transcript[3]
    assert tool_message.is_error is True
    assert json.loads(tool_message.content) == {
        "error": "DomainConflict",
        "message": "You have already applied to this job",
    }


@pytest.mark.asyncio
async def test_invalid_arguments_do_not_abort_siblings(orchestrator, model, store, seed):
    model.queue(
        tool_reply(
            ("call-1", "apply_to_job", {}),
            ("call-2", "no_such_tool", {}),
            ("call-3", "list_my_applications", {"limit": 1}),
        ),
        ModelReply(text="ok"),
    )

    result = await orchestrator.submit_turn("haz cosas", caller=CANDIDATE)

    session = await store.get(result.session_id)
    results = {m.tool_call_id: json.loads(m.content) for m in session.transcript if m.role == Role.TOOL}
    assert results["call-1"]["error"] == "InvalidArguments"
    assert results["call-2"]["error"] == "UnknownTool"
    assert results["call-3"]["applications"][0]["job_id"] == "job-data"


@pytest.mark.asyncio
async def test_provider_failure_keeps_user_message(orchestrator, model, store):
    """A failed first model call leaves the user message for a retry."""
    first = await orchestrator.submit_turn("hola")
    model.queue(ProviderFailure("Model request failed"))

    with pytest.raises(ProviderFailure):
        await orchestrator.submit_turn("¿sigues ahí?", session_id=first.session_id)

    history = await store.history(first.session_id)
    assert [m.content for m in history] == ["hola", "ok", "¿sigues ahí?"]


@pytest.mark.asyncio
async def test_provider_failure_after_tool_round_keeps_results(orchestrator, model, store, seed):
    model.queue(
        tool_reply(("call-1", "search_jobs", {})),
        ProviderFailure("Model request failed"),
    )

    with pytest.raises(ProviderFailure):
        await orchestrator.submit_turn("busca", caller=CANDIDATE)

    sessions = list(store._sessions.values())
    assert len(sessions) == 1
    transcript = sessions[0].transcript
    assert transcript[-1].role == Role.TOOL
    assert sessions[0].pending_tool_call_ids() == []


@pytest.mark.asyncio
async def test_unanswered_tool_calls_are_settled_before_next_turn(orchestrator, model, store):
    session, _ = await store.get_or_create()
    session.append(Message.system("briefing"))
    session.append(Message.user("busca"))
    session.append(Message.assistant("", [ToolCall(id="call-x", name="search_jobs", arguments={})]))
    await store.put(session)

    result = await orchestrator.submit_turn("¿y?", session_id=session.session_id)

    assert result.session_id == session.session_id
    settled = (await store.get(session.session_id)).transcript[3]
    assert settled.role == Role.TOOL
    assert settled.tool_call_id == "call-x"
    assert settled.is_error is True


@pytest.mark.asyncio
async def test_concurrent_turns_on_one_session_are_serialized(orchestrator, model, store):
    """100 concurrent turns: 200 new entries, every user message followed by its reply."""
    model.delay = 0.001
    first = await orchestrator.submit_turn("start")
    sid = first.session_id

    results = await asyncio.gather(*(
        orchestrator.submit_turn(f"msg {i}", session_id=sid) for i in range(100)
    ))

    assert {r.session_id for r in results} == {sid}
    history = await store.history(sid)
    assert len(history) == 2 + 200
    for user, reply in zip(history[0::2], history[1::2]):
        assert user.role == Role.USER
        assert reply.role == Role.ASSISTANT


@pytest.mark.asyncio
async def test_turns_on_different_sessions_run_in_parallel(orchestrator, model):
    model.delay = 0.05
    a = await orchestrator.submit_turn("a")
    b = await orchestrator.submit_turn("b")

    loop = asyncio.get_running_loop()
    started = loop.time()
    await asyncio.gather(
        orchestrator.submit_turn("a2", session_id=a.session_id),
        orchestrator.submit_turn("b2", session_id=b.session_id),
    )

    assert loop.time() - started < 0.09


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abandon_turn(orchestrator, model, store):
    model.delay = 0.05
    first = await orchestrator.submit_turn("hola")

    caller = asyncio.create_task(orchestrator.submit_turn("sigue", session_id=first.session_id))
    await asyncio.sleep(0.01)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    await asyncio.gather(*orchestrator._inflight)
    history = await store.history(first.session_id)
    assert [m.content for m in history][-2:] == ["sigue", "ok"]


@pytest.mark.asyncio
async def test_clear_session_then_history_is_empty(orchestrator):
    result = await orchestrator.submit_turn("hola")

    assert await orchestrator.clear_session(result.session_id) is True
    assert await orchestrator.clear_session(result.session_id) is False
    assert await orchestrator.get_history(result.session_id) == []


@pytest.mark.asyncio
async def test_profile_lookup_failure_still_briefs(store, model):
    from smarthire.agent import ToolExecutor, TurnOrchestrator

    class BrokenProfiles:
        async def lookup_profile(self, caller):
            raise RuntimeError("profile service down")

    orchestrator = TurnOrchestrator(
        store=store,
        model=model,
        executor=ToolExecutor(job_search=None, apply_service=None, application_listing=None),
        profile_lookup=BrokenProfiles(),
        static_knowledge="KNOWLEDGE",
    )

    result = await orchestrator.submit_turn("hola", caller=CANDIDATE)

    session = await store.get(result.session_id)
    assert session.transcript[0].content == "KNOWLEDGE"


def test_turn_rejects_second_tool_round():
    turn = Turn(Session(session_id="s1"))
    for state in (TurnState.BRIEFED, TurnState.MODEL_1, TurnState.TOOLS_REQUESTED,
                  TurnState.TOOL_ROUND, TurnState.MODEL_2):
        turn.advance(state)

    with pytest.raises(IllegalTransition):
        turn.advance(TurnState.TOOL_ROUND)


@pytest.mark.asyncio
async def test_repeated_tool_call_id_runs_once(orchestrator, model, store, seed):
    """A reply repeating a call id gets one execution and one result for it."""
    model.queue(
        tool_reply(
            ("call-1", "apply_to_job", {"job_id": "job-backend"}),
            ("call-1", "apply_to_job", {"job_id": "job-backend"}),
        ),
        ModelReply(text="Listo, postulaste."),
    )

    result = await orchestrator.submit_turn("postula", caller=CANDIDATE)

    assert result.reply == "Listo, postulaste."
    assert result.tool_calls_made == 1
    session = await store.get(result.session_id)
    tool_messages = [m for m in session.transcript if m.role == Role.TOOL]
    assert len(tool_messages) == 1
    assert tool_messages[0].is_error is False
    assert len(session.transcript[2].tool_calls) == 1


@pytest.mark.asyncio
async def test_history_hides_tool_traffic(orchestrator, model, seed):
    model.queue(
        tool_reply(("call-1", "search_jobs", {}), text="Buscando..."),
        ModelReply(text="Hay 2 vacantes."),
    )

    result = await orchestrator.submit_turn("busca", caller=CANDIDATE)

    history = await orchestrator.get_history(result.session_id)
    assert [(m.role, m.content) for m in history] == [
        (Role.USER, "busca"),
        (Role.ASSISTANT, "Hay 2 vacantes."),
    ]


@pytest.mark.asyncio
async def test_clear_unknown_session_leaves_no_lock(orchestrator, store):
    assert await orchestrator.clear_session("never-existed") is False
    assert store._locks == {}
