from typing import Dict, List, Any, Optional
from datetime import datetime
import asyncio
import copy
from collections import defaultdict

from sentinel.domain.models.session_state import Turn
from sentinel.domain.persistence.contracts import ConfigStore, GlobalSelection, HistoryStore


class InMemoryConfigStore(ConfigStore):
    """Provider settings kept for the lifetime of the process"""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self.settings: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})
        self._lock = asyncio.Lock()

    async def load(self, provider_name: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            stored = self.settings.get(provider_name)
            return dict(stored) if stored is not None else None

    async def save(self, provider_name: str, settings: Dict[str, Any]) -> None:
        async with self._lock:
            self.settings[provider_name] = dict(settings)


class InMemoryGlobalSelection(GlobalSelection):
    """Active provider name kept for the lifetime of the process"""

    def __init__(self, provider_name: Optional[str] = None):
        self.provider_name = provider_name

    async def load(self) -> Optional[str]:
        return self.provider_name

    async def save(self, provider_name: str) -> None:
        self.provider_name = provider_name


class InMemoryHistoryStore(HistoryStore):
    """Bounded per-conversation turn log"""

    def __init__(self, max_turns: int = 100):
        self.max_turns = max_turns
        self.conversations: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def append(self, conversation_id: str, turn: Turn) -> None:
        """Add a turn to conversation history"""

        async with self._lock:
            entry = turn.model_dump(mode="json")
            entry["recorded_at"] = datetime.utcnow().isoformat()
            self.conversations[conversation_id].append(entry)

            if len(self.conversations[conversation_id]) > self.max_turns:
                self.conversations[conversation_id] = self.conversations[conversation_id][-self.max_turns:]

    async def get_history(self, conversation_id: str) -> List[Dict[str, Any]]:
        async with self._lock:
            return list(self.conversations.get(conversation_id, []))

    async def clear(self, conversation_id: str):
        async with self._lock:
            self.conversations.pop(conversation_id, None)
