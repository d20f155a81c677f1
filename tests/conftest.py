"""
Pytest configuration and fixtures
"""
import asyncio
from typing import Dict, List, Optional

import pytest

from sentinel.domain.context.prompt_templates import PromptTemplates
from sentinel.domain.models.errors import ExecutorError, ProviderError
from sentinel.domain.models.session_state import Turn
from sentinel.domain.orchestration.core.session_engine import SessionEngine
from sentinel.domain.tool.command_executor import CommandExecutor
from sentinel.infrastructure.observability.logging import metrics
from sentinel.infrastructure.persistence.memory_store import InMemoryHistoryStore

SYSTEM_TEMPLATE = "You operate {target}."
REMINDER = " [reply with RUN: <command> when needed]"


class ScriptedProviders:
    """Stands in for ProviderManager: replies are consumed in order.

    A reply may be an exception instance, which is raised instead. When
    ``gate`` is set, each call waits on it before answering.
    """

    def __init__(self, replies: Optional[List] = None, gate: Optional[asyncio.Event] = None):
        self.replies = list(replies or [])
        self.gate = gate
        self.transcripts: List[List[Turn]] = []
        self.conversations: List[Optional[str]] = []
        self.started = asyncio.Event()

    async def chat(self, transcript: List[Turn], conversation_id: Optional[str] = None) -> str:
        self.transcripts.append(list(transcript))
        self.conversations.append(conversation_id)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingExecutor(CommandExecutor):
    """Returns canned output per command and records every run"""

    def __init__(self, outputs: Optional[Dict[str, str]] = None, error: Optional[str] = None):
        self.outputs = outputs or {}
        self.error = error
        self.calls: List[tuple] = []

    async def run(self, target: str, command: str) -> str:
        self.calls.append((target, command))
        if self.error:
            raise ExecutorError(self.error)
        return self.outputs.get(command, "")


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def templates() -> PromptTemplates:
    return PromptTemplates(system_template=SYSTEM_TEMPLATE, reminder=REMINDER)


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def make_engine(templates, history):
    def _make(providers, executor=None) -> SessionEngine:
        return SessionEngine(
            providers=providers,
            executor=executor or RecordingExecutor(),
            templates=templates,
            history=history
        )
    return _make


def provider_failure(message: str = "API Error: 500") -> ProviderError:
    return ProviderError(message, kind="api", provider="fake")
