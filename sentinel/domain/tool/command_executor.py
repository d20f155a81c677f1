from abc import ABC, abstractmethod
from typing import List


class CommandExecutor(ABC):
    """Runs a shell command against a target host.

    Implementations may block; failures are raised as ExecutorError carrying
    text the operator can read.
    """

    @abstractmethod
    async def run(self, target: str, command: str) -> str:
        """Return the command output"""
        pass


class TargetDirectory(ABC):
    """Editable table of the hosts an executor can reach, keyed by alias"""

    @abstractmethod
    def list_targets(self) -> List[str]:
        pass

    @abstractmethod
    async def add_target(self, alias: str, hostname: str, username: str, port: int = 22) -> None:
        """Add or replace a target.

        The change applies in memory first; ConfigError means it was not saved.
        """
        pass

    @abstractmethod
    async def remove_target(self, alias: str) -> bool:
        """False when the alias is unknown; ConfigError as for add_target"""
        pass
