"""
JSON-file persistence for provider settings, the active provider and the
turn audit log. File I/O runs in worker threads so the event loop never
blocks on disk.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime
from pathlib import Path
import asyncio
import json

import structlog

from sentinel.domain.models.errors import ConfigError
from sentinel.domain.models.session_state import Turn
from sentinel.domain.persistence.contracts import ConfigStore, GlobalSelection, HistoryStore

logger = structlog.get_logger(__name__)


def _read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e


def _write_json(path: Path, data: Any):
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        raise ConfigError(f"Failed to write {path}: {e}") from e


class JsonConfigStore(ConfigStore):
    """One ``<provider>.json`` file per backend under a config directory"""

    def __init__(self, config_dir: str):
        self.config_dir = Path(config_dir)

    def _path(self, provider_name: str) -> Path:
        return self.config_dir / f"{provider_name}.json"

    async def load(self, provider_name: str) -> Optional[Dict[str, Any]]:
        data = await asyncio.to_thread(_read_json, self._path(provider_name))
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Settings for '{provider_name}' must be a JSON object")
        return data

    async def save(self, provider_name: str, settings: Dict[str, Any]) -> None:
        await asyncio.to_thread(_write_json, self._path(provider_name), settings)
        logger.info("Provider settings saved", provider=provider_name)


class JsonGlobalSelection(GlobalSelection):
    """Active provider stored as ``{"provider": name}``"""

    def __init__(self, path: str):
        self.path = Path(path)

    async def load(self) -> Optional[str]:
        data = await asyncio.to_thread(_read_json, self.path)
        if data is None:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("provider"), str):
            raise ConfigError(f"Malformed provider selection in {self.path}")
        return data["provider"]

    async def save(self, provider_name: str) -> None:
        await asyncio.to_thread(_write_json, self.path, {"provider": provider_name})


class JsonlHistoryStore(HistoryStore):
    """Append-only JSON-lines turn log"""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _append_line(self, line: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def _read_lines(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        entries = []
        with self.path.open(encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    entries.append(json.loads(line))
        return entries

    async def append(self, conversation_id: str, turn: Turn) -> None:
        entry = {
            "conversation_id": conversation_id,
            "recorded_at": datetime.utcnow().isoformat(),
            **turn.model_dump(mode="json")
        }
        async with self._lock:
            await asyncio.to_thread(self._append_line, json.dumps(entry))

    async def get_history(self, conversation_id: str) -> List[Dict[str, Any]]:
        async with self._lock:
            entries = await asyncio.to_thread(self._read_lines)
        return [e for e in entries if e.get("conversation_id") == conversation_id]
