"""
SSH command execution against configured targets, on paramiko.
"""

from typing import Dict, Any, Callable, List, Optional
from pathlib import Path
import asyncio
import json

import paramiko
import structlog
from pydantic import BaseModel, Field, ValidationError

from sentinel.domain.models.errors import ConfigError, ExecutorError
from sentinel.domain.tool.command_executor import CommandExecutor, TargetDirectory

logger = structlog.get_logger(__name__)


class SshTarget(BaseModel):
    """Connection details for one managed server"""
    alias: str
    hostname: str
    port: int = Field(default=22, ge=1, le=65535)
    username: str
    password: Optional[str] = Field(default=None, repr=False)
    key_filename: Optional[str] = None
    verify_host_key: bool = False


def load_targets(path: str) -> Dict[str, SshTarget]:
    """Read a JSON list of targets keyed by alias; a missing file means no targets"""

    file_path = Path(path)
    if not file_path.exists():
        return {}

    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
        targets = [SshTarget(**item) for item in raw]
    except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
        raise ConfigError(f"Failed to load targets from {path}: {e}") from e

    return {t.alias: t for t in targets}


def save_targets(path: str, targets: Dict[str, SshTarget]):
    """Write the target table back as a JSON list, replacing the file atomically"""

    file_path = Path(path)
    data = [t.model_dump(mode="json", exclude_none=True) for t in targets.values()]
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = file_path.with_suffix(file_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(file_path)
    except OSError as e:
        raise ConfigError(f"Failed to save targets to {path}: {e}") from e


class SshExecutor(CommandExecutor, TargetDirectory):
    """Runs one command per connection; blocking paramiko work happens in a thread.

    When targets_file is set, target additions and removals are written back to it.
    """

    def __init__(
        self,
        targets: Dict[str, SshTarget],
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
        targets_file: Optional[str] = None
    ):
        self.targets = targets
        self.client_factory = client_factory
        self.targets_file = targets_file
        self._lock = asyncio.Lock()

    def list_targets(self) -> List[str]:
        return sorted(self.targets)

    async def add_target(self, alias: str, hostname: str, username: str, port: int = 22) -> None:
        target = SshTarget(alias=alias, hostname=hostname, username=username, port=port)
        async with self._lock:
            self.targets[alias] = target
            await self._save()
        logger.info("Target added", target=alias, hostname=hostname)

    async def remove_target(self, alias: str) -> bool:
        async with self._lock:
            if self.targets.pop(alias, None) is None:
                return False
            await self._save()
        logger.info("Target removed", target=alias)
        return True

    async def _save(self):
        if self.targets_file:
            await asyncio.to_thread(save_targets, self.targets_file, dict(self.targets))

    async def run(self, target: str, command: str) -> str:
        server = self.targets.get(target)
        if server is None:
            raise ExecutorError("Server not found.")

        logger.info("Executing command", target=target, hostname=server.hostname)
        return await asyncio.to_thread(self._run_blocking, server, command)

    def _connect_kwargs(self, server: SshTarget) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "hostname": server.hostname,
            "port": server.port,
            "username": server.username,
            "allow_agent": True,
            "look_for_keys": True,
        }
        if server.password:
            kwargs["password"] = server.password
        if server.key_filename:
            kwargs["key_filename"] = server.key_filename
        return kwargs

    def _run_blocking(self, server: SshTarget, command: str) -> str:
        client = self.client_factory()
        try:
            if server.verify_host_key:
                client.load_system_host_keys()
            else:
                client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

            try:
                client.connect(**self._connect_kwargs(server))
            except paramiko.AuthenticationException as e:
                raise ExecutorError(f"Authentication failed: {e}") from e
            except (paramiko.SSHException, OSError) as e:
                raise ExecutorError(f"Failed to connect to {server.hostname}:{server.port}: {e}") from e

            try:
                _, stdout_stream, stderr_stream = client.exec_command(command)
                stdout = stdout_stream.read().decode("utf-8", errors="replace")
                stderr = stderr_stream.read().decode("utf-8", errors="replace")
            except (paramiko.SSHException, OSError) as e:
                raise ExecutorError(f"Failed to execute command: {e}") from e
        finally:
            client.close()

        if stderr.strip():
            return f"{stdout}\nSTDERR:\n{stderr}" if stdout else f"STDERR:\n{stderr}"
        return stdout
