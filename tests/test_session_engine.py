"""
Tests for the per-conversation session state machine
"""
import asyncio

import pytest

from conftest import REMINDER, RecordingExecutor, ScriptedProviders, provider_failure
from sentinel.domain.directive.command_codec import Base64CommandCodec
from sentinel.domain.models.errors import EncodingError, SessionError
from sentinel.domain.models.session_state import ReplyKind, SessionStatus, TurnRole
from sentinel.domain.orchestration.core.session_engine import (
    CONTINUATION_PROMPT, NO_ACTIVE_SESSION, NOTHING_PENDING, SKIPPED_TURN, SessionEngine
)
from sentinel.infrastructure.persistence.memory_store import InMemoryHistoryStore


@pytest.mark.asyncio
async def test_check_disk_scenario(make_engine):
    """start -> directive -> confirm -> final answer leaves five turns"""
    providers = ScriptedProviders(["I will check.\nRUN: df -h", "Disk usage is healthy."])
    executor = RecordingExecutor({"df -h": "45% used"})
    engine = make_engine(providers, executor)

    await engine.start("c1", "db1")
    reply = await engine.user_input("c1", "check disk")

    assert reply.kind == ReplyKind.CONFIRMATION
    assert reply.confirmation.command == "df -h"
    assert reply.text == "I will check.\n\nRunning command: `df -h`"
    assert engine.get_session("c1").status == SessionStatus.AWAITING_CONFIRMATION

    final = await engine.confirm("c1")

    assert final.kind == ReplyKind.ANSWER
    assert final.text == "Disk usage is healthy."
    assert executor.calls == [("db1", "df -h")]

    session = engine.get_session("c1")
    assert session.status == SessionStatus.ACTIVE
    assert session.pending is None
    assert [t.role for t in session.turns] == [
        TurnRole.SYSTEM, TurnRole.USER, TurnRole.ASSISTANT, TurnRole.USER, TurnRole.ASSISTANT
    ]
    assert session.turns[0].content == "You operate db1."
    assert session.turns[3].content == "Command Output:\n45% used"
    assert [t.ordinal for t in session.turns] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_reminder_only_in_outgoing_transcript(make_engine):
    providers = ScriptedProviders(["Hello."])
    engine = make_engine(providers)

    await engine.start("c1", "web1")
    await engine.user_input("c1", "hi")

    sent = providers.transcripts[0]
    assert sent[-1].content == "hi" + REMINDER
    assert engine.get_session("c1").turns[1].content == "hi"


@pytest.mark.asyncio
async def test_continuation_prompt_appended_after_confirm(make_engine):
    providers = ScriptedProviders(["RUN: uptime", "Up for days."])
    engine = make_engine(providers, RecordingExecutor({"uptime": "up 3 days"}))

    await engine.start("c1", "web1")
    await engine.user_input("c1", "how long up?")
    await engine.confirm("c1")

    sent = providers.transcripts[1][-1].content
    assert sent.startswith("Command Output:\nup 3 days")
    assert CONTINUATION_PROMPT in sent
    assert CONTINUATION_PROMPT not in engine.get_session("c1").turns[3].content


@pytest.mark.asyncio
async def test_chained_directive_reenters_awaiting(make_engine):
    providers = ScriptedProviders(["RUN: df -h", "Root is full.\nRUN: du -sh /var"])
    engine = make_engine(providers, RecordingExecutor({"df -h": "99%"}))

    await engine.start("c1", "db1")
    await engine.user_input("c1", "check disk")
    reply = await engine.confirm("c1")

    assert reply.kind == ReplyKind.CONFIRMATION
    assert reply.confirmation.command == "du -sh /var"
    assert engine.get_session("c1").status == SessionStatus.AWAITING_CONFIRMATION


@pytest.mark.asyncio
async def test_reject_adds_one_turn_without_calls(make_engine):
    providers = ScriptedProviders(["RUN: rm -rf /tmp/cache"])
    executor = RecordingExecutor()
    engine = make_engine(providers, executor)

    await engine.start("c1", "web1")
    await engine.user_input("c1", "clean up")
    before = list(engine.get_session("c1").turns)

    reply = await engine.reject("c1")

    session = engine.get_session("c1")
    assert reply.kind == ReplyKind.NOTICE
    assert session.status == SessionStatus.ACTIVE
    assert session.pending is None
    assert session.turns[:-1] == before
    assert session.turns[-1].role == TurnRole.USER
    assert session.turns[-1].content == SKIPPED_TURN
    assert len(providers.transcripts) == 1
    assert executor.calls == []


@pytest.mark.asyncio
async def test_confirm_without_pending_is_session_error(make_engine):
    engine = make_engine(ScriptedProviders())
    await engine.start("c1", "web1")
    before = list(engine.get_session("c1").turns)

    with pytest.raises(SessionError) as exc_info:
        await engine.confirm("c1")

    assert exc_info.value.message == NOTHING_PENDING
    assert engine.get_session("c1").status == SessionStatus.ACTIVE
    assert engine.get_session("c1").turns == before


@pytest.mark.asyncio
async def test_operations_without_session(make_engine):
    engine = make_engine(ScriptedProviders())

    with pytest.raises(SessionError) as exc_info:
        await engine.user_input("nobody", "hello")
    assert exc_info.value.message == NO_ACTIVE_SESSION

    with pytest.raises(SessionError):
        await engine.reject("nobody")

    assert await engine.end("nobody") is False


@pytest.mark.asyncio
async def test_user_input_while_awaiting_is_rejected(make_engine):
    engine = make_engine(ScriptedProviders(["RUN: ls"]))
    await engine.start("c1", "web1")
    await engine.user_input("c1", "list files")

    with pytest.raises(SessionError):
        await engine.user_input("c1", "another question")

    assert engine.get_session("c1").pending.raw_command == "ls"


@pytest.mark.asyncio
async def test_token_must_match_pending(make_engine):
    codec = Base64CommandCodec()
    executor = RecordingExecutor()
    engine = make_engine(ScriptedProviders(["RUN: ls", "done"]), executor)
    await engine.start("c1", "web1")
    reply = await engine.user_input("c1", "list files")

    with pytest.raises(SessionError):
        await engine.confirm("c1", codec.encode("reboot"))
    with pytest.raises(EncodingError):
        await engine.confirm("c1", "not*base64!")

    session = engine.get_session("c1")
    assert session.status == SessionStatus.AWAITING_CONFIRMATION
    assert executor.calls == []

    await engine.confirm("c1", reply.confirmation.token)
    assert executor.calls == [("web1", "ls")]


@pytest.mark.asyncio
async def test_provider_error_keeps_session_usable(make_engine):
    engine = make_engine(ScriptedProviders([provider_failure("API Error: 503"), "Recovered."]))
    await engine.start("c1", "web1")

    reply = await engine.user_input("c1", "status?")
    assert reply.kind == ReplyKind.ERROR
    assert reply.text == "AI Error: API Error: 503"
    assert engine.get_session("c1").status == SessionStatus.ACTIVE

    reply = await engine.user_input("c1", "status again?")
    assert reply.text == "Recovered."


@pytest.mark.asyncio
async def test_executor_error_becomes_output_text(make_engine):
    providers = ScriptedProviders(["RUN: df -h", "The host is unreachable."])
    engine = make_engine(providers, RecordingExecutor(error="Server not found."))
    await engine.start("c1", "ghost")
    await engine.user_input("c1", "check disk")

    reply = await engine.confirm("c1")

    assert reply.text == "The host is unreachable."
    assert engine.get_session("c1").turns[3].content == "Command Output:\nError: Server not found."


@pytest.mark.asyncio
async def test_end_during_provider_call_discards_reply(make_engine):
    gate = asyncio.Event()
    providers = ScriptedProviders(["too late"], gate=gate)
    engine = make_engine(providers)
    await engine.start("c1", "web1")

    task = asyncio.create_task(engine.user_input("c1", "slow question"))
    await providers.started.wait()

    assert await engine.end("c1") is True
    gate.set()
    reply = await task

    assert reply.kind == ReplyKind.NOTICE
    assert reply.text == NO_ACTIVE_SESSION
    assert engine.get_session("c1") is None


@pytest.mark.asyncio
async def test_end_then_restart_during_call_keeps_new_session_clean(make_engine):
    gate = asyncio.Event()
    providers = ScriptedProviders(["old reply"], gate=gate)
    engine = make_engine(providers)
    await engine.start("c1", "web1")

    task = asyncio.create_task(engine.user_input("c1", "question"))
    await providers.started.wait()

    await engine.end("c1")
    # start queues behind the in-flight event for the same conversation
    restart = asyncio.create_task(engine.start("c1", "web2"))
    gate.set()

    reply = await task
    await restart

    assert reply.text == NO_ACTIVE_SESSION
    session = engine.get_session("c1")
    assert session.target == "web2"
    assert [t.role for t in session.turns] == [TurnRole.SYSTEM]


@pytest.mark.asyncio
async def test_resolve_labels(make_engine):
    executor = RecordingExecutor()
    engine = make_engine(ScriptedProviders(["RUN: ls", "ok", "RUN: ls", "RUN: ls"]), executor)
    await engine.start("c1", "web1")

    await engine.user_input("c1", "one")
    await engine.resolve("c1", "Execute")
    assert executor.calls == [("web1", "ls")]

    await engine.user_input("c1", "two")
    await engine.resolve("c1", "run")
    assert engine.get_session("c1").turns[-1].content == SKIPPED_TURN

    await engine.user_input("c1", "three")
    await engine.resolve("c1", "Maybe later")
    assert engine.get_session("c1").turns[-1].content == SKIPPED_TURN
    assert len(executor.calls) == 1


@pytest.mark.asyncio
async def test_ordinals_increase_across_operations(make_engine):
    providers = ScriptedProviders(["RUN: ls", "RUN: pwd", "All good."])
    engine = make_engine(providers, RecordingExecutor({"ls": "a b"}))
    await engine.start("c1", "web1")
    await engine.user_input("c1", "first")
    await engine.reject("c1")
    await engine.user_input("c1", "second")
    await engine.confirm("c1")

    ordinals = [t.ordinal for t in engine.transcript("c1")]
    assert ordinals == list(range(1, len(ordinals) + 1))
    assert len(ordinals) == 8


@pytest.mark.asyncio
async def test_turns_are_recorded_in_history(make_engine, history):
    engine = make_engine(ScriptedProviders(["Fine."]))
    await engine.start("c1", "web1")
    await engine.user_input("c1", "how are you")

    entries = await history.get_history("c1")
    assert [e["role"] for e in entries] == ["system", "user", "assistant"]
    assert entries[1]["content"] == "how are you"


class GatedHistoryStore(InMemoryHistoryStore):
    """Holds every assistant turn until released"""

    def __init__(self):
        super().__init__()
        self.waiting = asyncio.Event()
        self.release = asyncio.Event()

    async def append(self, conversation_id, turn):
        if turn.role == TurnRole.ASSISTANT:
            self.waiting.set()
            await self.release.wait()
        await super().append(conversation_id, turn)


class GatedExecutor(RecordingExecutor):
    def __init__(self, outputs=None):
        super().__init__(outputs)
        self.running = asyncio.Event()
        self.release = asyncio.Event()

    async def run(self, target, command):
        self.running.set()
        await self.release.wait()
        return await super().run(target, command)


@pytest.mark.asyncio
async def test_end_while_recording_reply_discards_directive(templates):
    history = GatedHistoryStore()
    engine = SessionEngine(
        providers=ScriptedProviders(["Restarting.\nRUN: reboot"]),
        executor=RecordingExecutor(),
        templates=templates,
        history=history
    )
    await engine.start("c1", "web1")

    task = asyncio.create_task(engine.user_input("c1", "restart it"))
    await history.waiting.wait()

    assert await engine.end("c1") is True
    history.release.set()
    reply = await task

    assert reply.kind == ReplyKind.NOTICE
    assert reply.text == NO_ACTIVE_SESSION
    assert reply.confirmation is None
    assert engine.get_session("c1") is None


@pytest.mark.asyncio
async def test_end_during_execution_discards_output(make_engine):
    providers = ScriptedProviders(["RUN: uptime", "should never be asked"])
    executor = GatedExecutor({"uptime": "up 3 days"})
    engine = make_engine(providers, executor)
    await engine.start("c1", "web1")
    await engine.user_input("c1", "how long has it been up?")

    task = asyncio.create_task(engine.confirm("c1"))
    await executor.running.wait()

    assert await engine.end("c1") is True
    executor.release.set()
    reply = await task

    assert reply.kind == ReplyKind.NOTICE
    assert reply.text == NO_ACTIVE_SESSION
    assert executor.calls == [("web1", "uptime")]
    assert len(providers.transcripts) == 1
    assert engine.get_session("c1") is None
