from .command_executor import CommandExecutor, TargetDirectory
from .discovery import DiscoveryReport, discover

__all__ = ["CommandExecutor", "TargetDirectory", "DiscoveryReport", "discover"]
