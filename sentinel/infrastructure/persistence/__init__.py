from .memory_store import InMemoryConfigStore, InMemoryGlobalSelection, InMemoryHistoryStore
from .json_store import JsonConfigStore, JsonGlobalSelection, JsonlHistoryStore

__all__ = [
    "InMemoryConfigStore", "InMemoryGlobalSelection", "InMemoryHistoryStore",
    "JsonConfigStore", "JsonGlobalSelection", "JsonlHistoryStore",
]
