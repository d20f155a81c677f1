from .errors import (
    SentinelError, ProviderError, ConfigError,
    EncodingError, SessionError, ExecutorError
)
from .provider_models import ProviderDescriptor, SwitchResult, DEFAULT_DESCRIPTORS, DEFAULT_PROVIDER
from .session_state import (
    Turn, TurnRole, Session, SessionStatus, PendingToolCall,
    ConfirmationRequest, EngineReply, ReplyKind
)

__all__ = [
    "SentinelError", "ProviderError", "ConfigError",
    "EncodingError", "SessionError", "ExecutorError",
    "ProviderDescriptor", "SwitchResult", "DEFAULT_DESCRIPTORS", "DEFAULT_PROVIDER",
    "Turn", "TurnRole", "Session", "SessionStatus", "PendingToolCall",
    "ConfirmationRequest", "EngineReply", "ReplyKind",
]
