from typing import List, Optional
import time

import structlog

from sentinel.domain.context.prompt_templates import PromptTemplates
from sentinel.domain.context.state.session_store import SessionStore
from sentinel.domain.directive.command_codec import CommandCodec, Base64CommandCodec
from sentinel.domain.directive.directive_parser import DirectiveParser, build_confirmation_prompt
from sentinel.domain.models.errors import ProviderError, ExecutorError, SessionError
from sentinel.domain.models.session_state import (
    Session, SessionStatus, Turn, TurnRole, PendingToolCall,
    ConfirmationRequest, EngineReply, ReplyKind
)
from sentinel.domain.persistence.contracts import HistoryStore
from sentinel.domain.provider.provider_manager import ProviderManager
from sentinel.domain.tool.command_executor import CommandExecutor
from sentinel.infrastructure.observability.logging import sentinel_logger, metrics

logger = structlog.get_logger(__name__)

AFFIRMATIVE_LABELS = frozenset({"Run", "Confirm", "Execute"})
CANCEL_LABELS = frozenset({"Skip", "Cancel"})

CONTINUATION_PROMPT = "Command executed. Analyze results."
SKIPPED_TURN = "I skipped the command execution."
COMMAND_OUTPUT_PREFIX = "Command Output:\n"

NO_ACTIVE_SESSION = "No active session."
NOTHING_PENDING = "Nothing pending: no command is awaiting confirmation."
CONFIRMATION_OUTSTANDING = "A command is awaiting confirmation. Run or skip it first."
STALE_CONFIRMATION = "This confirmation no longer matches the pending command."

NO_SESSION_STATE = "no_session"


class SessionEngine:
    """Per-conversation state machine.

    NoSession -> Active <-> AwaitingConfirmation -> NoSession (on end).
    Replies are parsed for a RUN: directive; a directive parks the command
    until the operator confirms or rejects it, and confirmed output is fed
    back to the provider for another round.
    """

    def __init__(
        self,
        providers: ProviderManager,
        executor: CommandExecutor,
        store: Optional[SessionStore] = None,
        parser: Optional[DirectiveParser] = None,
        codec: Optional[CommandCodec] = None,
        templates: Optional[PromptTemplates] = None,
        history: Optional[HistoryStore] = None
    ):
        self.providers = providers
        self.executor = executor
        self.store = store or SessionStore()
        self.parser = parser or DirectiveParser()
        self.codec = codec or Base64CommandCodec()
        self.templates = templates or PromptTemplates()
        self.history = history

    # Lifecycle

    async def start(self, conversation_id: str, target: str) -> EngineReply:
        """Open a session bound to target, replacing any existing one"""

        async with self.store.conversation_lock(conversation_id):
            session = Session(conversation_id=conversation_id, target=target)
            system_turn = session.append_turn(TurnRole.SYSTEM, self.templates.system_prompt(target))
            previous = await self.store.put(session)

        sentinel_logger.log_session_transition(
            conversation_id,
            previous.status.value if previous else NO_SESSION_STATE,
            SessionStatus.ACTIVE.value,
            "start",
            {"target": target, "replaced": previous is not None}
        )
        await self._record(conversation_id, system_turn)

        return EngineReply.notice(f"Session started with {target}. Ask me anything about this server.")

    async def end(self, conversation_id: str) -> bool:
        """Drop the session; in-flight calls finish but their results are discarded"""

        session = await self.store.remove(conversation_id)
        if session is None:
            return False

        sentinel_logger.log_session_transition(
            conversation_id, session.status.value, NO_SESSION_STATE, "end"
        )
        return True

    def get_session(self, conversation_id: str) -> Optional[Session]:
        return self.store.get(conversation_id)

    def transcript(self, conversation_id: str) -> List[Turn]:
        session = self.store.get(conversation_id)
        return list(session.turns) if session else []

    # Conversational events

    async def user_input(self, conversation_id: str, text: str) -> EngineReply:
        """Append an operator message and ask the provider"""

        async with self.store.conversation_lock(conversation_id):
            session = self._require(conversation_id, SessionStatus.ACTIVE)

            async with self.store.lock:
                user_turn = session.append_turn(TurnRole.USER, text)
            await self._record(conversation_id, user_turn)

            transcript = session.build_transcript(self.templates.reminder)
            return await self._converse(session, transcript)

    async def confirm(self, conversation_id: str, token: Optional[str] = None) -> EngineReply:
        """Run the pending command and continue the conversation with its output"""

        async with self.store.conversation_lock(conversation_id):
            session = self._require(conversation_id, SessionStatus.AWAITING_CONFIRMATION)
            pending = session.pending

            if token is not None:
                # EncodingError leaves the session awaiting confirmation
                command = self.codec.decode(token)
                if command != pending.raw_command:
                    raise SessionError(STALE_CONFIRMATION)

            async with self.store.lock:
                session.clear_pending()
            sentinel_logger.log_session_transition(
                conversation_id,
                SessionStatus.AWAITING_CONFIRMATION.value,
                SessionStatus.ACTIVE.value,
                "confirm",
                {"command": pending.raw_command}
            )

            output = await self._execute(session, pending.raw_command)

            async with self.store.lock:
                if not self.store.holds(session):
                    logger.info("Discarding command output for ended session", conversation_id=conversation_id)
                    return EngineReply.notice(NO_ACTIVE_SESSION)
                result_turn = session.append_turn(TurnRole.USER, COMMAND_OUTPUT_PREFIX + output)
            await self._record(conversation_id, result_turn)

            transcript = session.build_transcript(f"\n\n{CONTINUATION_PROMPT}{self.templates.reminder}")
            return await self._converse(session, transcript)

    async def reject(self, conversation_id: str) -> EngineReply:
        """Discard the pending command without calling provider or executor"""

        async with self.store.conversation_lock(conversation_id):
            session = self._require(conversation_id, SessionStatus.AWAITING_CONFIRMATION)

            async with self.store.lock:
                pending = session.clear_pending()
                skip_turn = session.append_turn(TurnRole.USER, SKIPPED_TURN)

            sentinel_logger.log_session_transition(
                conversation_id,
                SessionStatus.AWAITING_CONFIRMATION.value,
                SessionStatus.ACTIVE.value,
                "reject",
                {"command": pending.raw_command if pending else None}
            )
            await self._record(conversation_id, skip_turn)

        return EngineReply.notice("Command execution skipped.")

    async def resolve(self, conversation_id: str, label: str, token: Optional[str] = None) -> EngineReply:
        """Answer a confirmation request; only the affirmative labels execute"""

        if label in AFFIRMATIVE_LABELS:
            return await self.confirm(conversation_id, token)

        if label not in CANCEL_LABELS:
            logger.info("Unrecognized confirmation label treated as rejection", label=label)
        return await self.reject(conversation_id)

    # Internals

    def _require(self, conversation_id: str, expected: SessionStatus) -> Session:
        session = self.store.get(conversation_id)
        if session is None:
            raise SessionError(NO_ACTIVE_SESSION)
        if session.status != expected:
            if expected == SessionStatus.AWAITING_CONFIRMATION:
                raise SessionError(NOTHING_PENDING)
            raise SessionError(CONFIRMATION_OUTSTANDING)
        return session

    async def _converse(self, session: Session, transcript: List[Turn]) -> EngineReply:
        conversation_id = session.conversation_id

        try:
            reply = await self.providers.chat(transcript, conversation_id)
        except ProviderError as e:
            return EngineReply.error(f"AI Error: {e.message}")

        parsed = self.parser.parse(reply)
        pending = None
        if parsed.has_directive:
            pending = PendingToolCall(
                session_id=conversation_id,
                raw_command=parsed.command,
                opaque_token=self.codec.encode(parsed.command),
                preamble=parsed.preamble
            )

        # the reply and the pending call land together or not at all
        async with self.store.lock:
            if not self.store.holds(session):
                logger.info("Discarding provider reply for ended session", conversation_id=conversation_id)
                return EngineReply.notice(NO_ACTIVE_SESSION)
            assistant_turn = session.append_turn(TurnRole.ASSISTANT, reply)
            if pending is not None:
                session.await_confirmation(pending)
        await self._record(conversation_id, assistant_turn)

        if not self.store.holds(session):
            logger.info("Session ended while recording reply", conversation_id=conversation_id)
            return EngineReply.notice(NO_ACTIVE_SESSION)

        if pending is None:
            return EngineReply.answer(reply)

        sentinel_logger.log_session_transition(
            conversation_id,
            SessionStatus.ACTIVE.value,
            SessionStatus.AWAITING_CONFIRMATION.value,
            "directive",
            {"command": pending.raw_command}
        )

        prompt = build_confirmation_prompt(parsed.preamble, parsed.command)
        return EngineReply(
            kind=ReplyKind.CONFIRMATION,
            text=prompt,
            confirmation=ConfirmationRequest(
                conversation_id=conversation_id,
                prompt=prompt,
                command=pending.raw_command,
                token=pending.opaque_token
            )
        )

    async def _execute(self, session: Session, command: str) -> str:
        started = time.perf_counter()
        try:
            output = await self.executor.run(session.target, command)
        except ExecutorError as e:
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.increment_counter("executor.errors", tags={"target": session.target})
            sentinel_logger.log_command_execution(
                session.conversation_id, session.target, command, duration_ms, success=False, error=e.message
            )
            return f"Error: {e.message}"

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency("executor.run", duration_ms, tags={"target": session.target})
        sentinel_logger.log_command_execution(session.conversation_id, session.target, command, duration_ms)
        return output

    async def _record(self, conversation_id: str, turn: Turn):
        if self.history is None:
            return
        try:
            await self.history.append(conversation_id, turn)
        except Exception as e:
            logger.warning("Failed to save chat message", conversation_id=conversation_id, error=str(e))
