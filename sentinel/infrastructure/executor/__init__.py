from .ssh_executor import SshExecutor, SshTarget, load_targets, save_targets

__all__ = ["SshExecutor", "SshTarget", "load_targets", "save_targets"]
