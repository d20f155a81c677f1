from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum


class EventType(str, Enum):
    """Discriminator carried in every websocket frame"""
    MARKDOWN = "markdown"
    CONFIRMATION = "confirmation"
    ERROR = "error"
    CONNECTION = "connection"
    USER_MESSAGE = "user_message"
    CONFIRMATION_RESPONSE = "confirmation_response"


class BaseEvent(BaseModel):
    """Common envelope for inbound and outbound frames"""
    type: EventType
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    conversation_id: Optional[str] = None


class MarkdownEvent(BaseEvent):
    """Chat text rendered as markdown by the client"""
    type: Literal[EventType.MARKDOWN] = EventType.MARKDOWN
    payload: str


class ConfirmationPayload(BaseModel):
    """A proposed command awaiting Run/Skip"""
    prompt: str
    command: str
    token: str = Field(description="Opaque command token echoed back with the answer")
    options: List[str] = Field(default_factory=lambda: ["Run", "Skip"])


class ConfirmationEvent(BaseEvent):
    """Confirmation request rendered as buttons by the client"""
    type: Literal[EventType.CONFIRMATION] = EventType.CONFIRMATION
    payload: ConfirmationPayload


class ErrorEvent(BaseEvent):
    """Operator-visible failure"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Socket lifecycle notice"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected", "reconnecting"]


class UserMessage(BaseEvent):
    """Operator chat message"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str
    metadata: Optional[Dict[str, Any]] = None


class ConfirmationResponse(BaseEvent):
    """Operator answer to a confirmation request"""
    type: Literal[EventType.CONFIRMATION_RESPONSE] = EventType.CONFIRMATION_RESPONSE
    label: str = Field(description="Button label the operator chose")
    token: Optional[str] = None
