from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from sentinel.domain.models.session_state import Turn


class ConfigStore(ABC):
    """Per-provider settings storage"""

    @abstractmethod
    async def load(self, provider_name: str) -> Optional[Dict[str, Any]]:
        """Return stored settings, None when nothing is stored.

        Raises ConfigError when the store is unreachable or the data is malformed.
        """
        pass

    @abstractmethod
    async def save(self, provider_name: str, settings: Dict[str, Any]) -> None:
        """Persist settings, raising ConfigError on failure"""
        pass


class GlobalSelection(ABC):
    """Remembers which provider is active across restarts"""

    @abstractmethod
    async def load(self) -> Optional[str]:
        pass

    @abstractmethod
    async def save(self, provider_name: str) -> None:
        pass


class HistoryStore(ABC):
    """Audit trail of transcript turns"""

    @abstractmethod
    async def append(self, conversation_id: str, turn: Turn) -> None:
        pass

    @abstractmethod
    async def get_history(self, conversation_id: str) -> List[Dict[str, Any]]:
        pass
