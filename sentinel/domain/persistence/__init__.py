from .contracts import ConfigStore, GlobalSelection, HistoryStore

__all__ = ["ConfigStore", "GlobalSelection", "HistoryStore"]
