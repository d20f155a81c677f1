"""
Server discovery: a fixed set of read-only checks summarised as a report
the provider can analyse.
"""

from typing import List, Tuple
from datetime import datetime
import asyncio

import structlog
from pydantic import BaseModel, Field

from sentinel.domain.models.errors import ExecutorError
from .command_executor import CommandExecutor

logger = structlog.get_logger(__name__)

UNKNOWN = "Unknown"

DISCOVERY_QUESTION = (
    "Analyze this server report and tell me what is the status of the server. "
    "Are there any issues? What should I check next? Be concise."
)

OS_RELEASE_CHECK = "cat /etc/os-release | grep PRETTY_NAME | cut -d= -f2 | tr -d '\"'"
KERNEL_CHECK = "uname -r"
HOSTNAME_CHECK = "hostname"
UPTIME_CHECK = "uptime -p"
LOAD_CHECK = "cat /proc/loadavg | awk '{print $1, $2, $3}'"
MEMORY_CHECK = "free -h | grep Mem | awk '{print $3 \" / \" $2}'"
DISK_CHECK = "df -h / | tail -n 1 | awk '{print $3 \" / \" $2 \" (\" $5 \")\"}'"
SERVICES_CHECK = (
    "systemctl list-units --type=service --state=running --no-pager --plain "
    "| head -n 15 | awk '{print $1}'"
)

CHECKS = (
    OS_RELEASE_CHECK, KERNEL_CHECK, HOSTNAME_CHECK, UPTIME_CHECK,
    LOAD_CHECK, MEMORY_CHECK, DISK_CHECK, SERVICES_CHECK
)


class SystemInfo(BaseModel):
    os_release: str
    kernel_version: str
    hostname: str
    uptime: str


class Resources(BaseModel):
    cpu_usage: str
    memory_usage: str
    disk_usage: str


class RunningService(BaseModel):
    name: str
    status: str = "running"


class DiscoveryReport(BaseModel):
    system_info: SystemInfo
    resources: Resources
    services: List[RunningService] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())


async def _check(executor: CommandExecutor, target: str, command: str) -> Tuple[str, bool]:
    try:
        return (await executor.run(target, command)).strip(), True
    except ExecutorError as e:
        logger.info("Discovery check failed", target=target, command=command, error=e.message)
        return UNKNOWN, False


async def discover(executor: CommandExecutor, target: str) -> DiscoveryReport:
    """Run every check; a single failed check reads as Unknown.

    Raises ExecutorError only when no check succeeds, which means the
    target is unreachable rather than partly unsupported.
    """

    results = await asyncio.gather(*(_check(executor, target, command) for command in CHECKS))
    if not any(ok for _, ok in results):
        raise ExecutorError(f"no check succeeded on {target}")

    (os_release, kernel, hostname, uptime, load, memory, disk, services_raw) = [out for out, _ in results]

    services = [
        RunningService(name=line.strip())
        for line in services_raw.splitlines()
        if ".service" in line
    ]

    return DiscoveryReport(
        system_info=SystemInfo(
            os_release=os_release,
            kernel_version=kernel,
            hostname=hostname,
            uptime=uptime
        ),
        resources=Resources(
            cpu_usage=f"Load Avg: {load}",
            memory_usage=memory,
            disk_usage=disk
        ),
        services=services
    )
