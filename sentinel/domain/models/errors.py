from typing import Optional


class SentinelError(Exception):
    """Base class for errors surfaced to the operator"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProviderError(SentinelError):
    """Backend call failed (network, authentication, api or parse)"""

    def __init__(self, message: str, kind: str = "api", provider: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.provider = provider


class ConfigError(SentinelError):
    """Configuration store unreachable or holding malformed data"""


class EncodingError(SentinelError):
    """A pending-command token could not be decoded"""


class SessionError(SentinelError):
    """Operation invoked in the wrong session state, or unknown provider"""


class ExecutorError(SentinelError):
    """Opaque failure reported by the remote command executor"""
