from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum


class TurnRole(str, Enum):
    """Role of a transcript turn"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class SessionStatus(str, Enum):
    """Session state machine states"""
    ACTIVE = "active"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class ReplyKind(str, Enum):
    """What the engine hands back to the transport"""
    ANSWER = "answer"
    CONFIRMATION = "confirmation"
    NOTICE = "notice"
    ERROR = "error"


class Turn(BaseModel):
    """One role-tagged message unit in a session's history"""
    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: str
    ordinal: int = Field(description="Strictly increasing position in the session")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class PendingToolCall(BaseModel):
    """A parsed command waiting for operator confirmation"""
    model_config = ConfigDict(frozen=True)

    session_id: str = Field(description="Conversation the command belongs to")
    raw_command: str
    opaque_token: str = Field(description="Transport-safe encoding of raw_command")
    preamble: str = ""


class ConfirmationRequest(BaseModel):
    """Payload the transport renders as a run/skip choice"""
    conversation_id: str
    prompt: str
    command: str
    token: str
    options: List[str] = Field(default_factory=lambda: ["Run", "Skip"])


class EngineReply(BaseModel):
    """Result of one engine operation"""
    kind: ReplyKind
    text: str
    confirmation: Optional[ConfirmationRequest] = None

    @classmethod
    def answer(cls, text: str) -> "EngineReply":
        return cls(kind=ReplyKind.ANSWER, text=text)

    @classmethod
    def notice(cls, text: str) -> "EngineReply":
        return cls(kind=ReplyKind.NOTICE, text=text)

    @classmethod
    def error(cls, text: str) -> "EngineReply":
        return cls(kind=ReplyKind.ERROR, text=text)


class Session(BaseModel):
    """Per-conversation state: transcript, bound target and pending command"""
    conversation_id: str
    target: str = Field(description="Identity of the host commands run against")
    turns: List[Turn] = Field(default_factory=list)
    status: SessionStatus = Field(default=SessionStatus.ACTIVE)
    pending: Optional[PendingToolCall] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity: datetime = Field(default_factory=datetime.utcnow)

    def append_turn(self, role: TurnRole, content: str) -> Turn:
        """Append an immutable turn with the next ordinal"""
        ordinal = self.turns[-1].ordinal + 1 if self.turns else 1
        turn = Turn(role=role, content=content, ordinal=ordinal)
        self.turns.append(turn)
        self.last_activity = datetime.utcnow()
        return turn

    def build_transcript(self, suffix: str = "") -> List[Turn]:
        """Copy of the turns with suffix added to a trailing user turn only"""
        transcript = list(self.turns)
        if suffix and transcript and transcript[-1].role == TurnRole.USER:
            last = transcript[-1]
            transcript[-1] = last.model_copy(update={"content": last.content + suffix})
        return transcript

    def await_confirmation(self, pending: PendingToolCall):
        """Enter AwaitingConfirmation holding exactly one pending call"""
        if pending.session_id != self.conversation_id:
            raise ValueError("Pending call belongs to another session")
        self.pending = pending
        self.status = SessionStatus.AWAITING_CONFIRMATION
        self.last_activity = datetime.utcnow()

    def clear_pending(self) -> Optional[PendingToolCall]:
        """Drop the pending call and return to Active"""
        pending = self.pending
        self.pending = None
        self.status = SessionStatus.ACTIVE
        self.last_activity = datetime.utcnow()
        return pending

    def get_state_summary(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "target": self.target,
            "status": self.status.value,
            "turns": len(self.turns),
            "pending_command": self.pending.raw_command if self.pending else None,
            "last_activity": self.last_activity.isoformat()
        }
