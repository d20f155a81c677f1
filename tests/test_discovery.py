"""
Tests for server discovery checks and report assembly
"""
import pytest

from sentinel.domain.models.errors import ExecutorError
from sentinel.domain.tool.command_executor import CommandExecutor
from sentinel.domain.tool.discovery import (
    DISK_CHECK, HOSTNAME_CHECK, KERNEL_CHECK, LOAD_CHECK, MEMORY_CHECK,
    OS_RELEASE_CHECK, CHECKS, SERVICES_CHECK, UPTIME_CHECK, discover
)


class CheckExecutor(CommandExecutor):
    """Answers known checks, fails the rest"""

    def __init__(self, outputs):
        self.outputs = outputs
        self.calls = []

    async def run(self, target, command):
        self.calls.append((target, command))
        if command not in self.outputs:
            raise ExecutorError("command not found")
        return self.outputs[command]


HEALTHY = {
    OS_RELEASE_CHECK: "Ubuntu 22.04.4 LTS\n",
    KERNEL_CHECK: "5.15.0-105-generic\n",
    HOSTNAME_CHECK: "db1\n",
    UPTIME_CHECK: "up 3 days, 4 hours\n",
    LOAD_CHECK: "0.12 0.08 0.05\n",
    MEMORY_CHECK: "1.2Gi / 7.7Gi\n",
    DISK_CHECK: "12G / 40G (30%)\n",
    SERVICES_CHECK: "UNIT\ncron.service\nssh.service\npostgresql.service\n",
}


@pytest.mark.asyncio
async def test_report_from_all_checks():
    executor = CheckExecutor(HEALTHY)

    report = await discover(executor, "db1")

    assert sorted(command for _, command in executor.calls) == sorted(CHECKS)
    assert all(target == "db1" for target, _ in executor.calls)
    assert report.system_info.os_release == "Ubuntu 22.04.4 LTS"
    assert report.system_info.hostname == "db1"
    assert report.resources.cpu_usage == "Load Avg: 0.12 0.08 0.05"
    assert report.resources.disk_usage == "12G / 40G (30%)"
    assert [s.name for s in report.services] == ["cron.service", "ssh.service", "postgresql.service"]
    assert {s.status for s in report.services} == {"running"}


@pytest.mark.asyncio
async def test_failed_check_reads_unknown():
    outputs = {command: output for command, output in HEALTHY.items() if command != UPTIME_CHECK}

    report = await discover(CheckExecutor(outputs), "db1")

    assert report.system_info.uptime == "Unknown"
    assert report.system_info.kernel_version == "5.15.0-105-generic"


@pytest.mark.asyncio
async def test_unreachable_target_raises():
    with pytest.raises(ExecutorError) as exc_info:
        await discover(CheckExecutor({}), "ghost")
    assert "ghost" in exc_info.value.message
