import structlog
import logging
import sys
from collections import defaultdict
from typing import Dict, Any, Optional, Tuple
from datetime import datetime
import os

from sentinel import __version__

_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "sentinel"
) -> None:
    """Route structlog through stdlib logging with a JSON or console renderer"""

    level_name = log_level.upper() if log_level.upper() in _LEVELS else "INFO"
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level_name))

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_secrets,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=__version__
    )


SECRET_KEYS = ("credential", "password", "api_key", "token")


def redact_secrets(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask credential-like fields; confirmation tokens are only logged by length"""

    for key in SECRET_KEYS:
        value = event_dict.get(key)
        if value:
            event_dict[key] = f"<redacted:{len(str(value))}>"
    return event_dict


class SentinelLogger:
    """Structured events for session, provider and executor activity"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_session_transition(
        self,
        conversation_id: str,
        from_state: str,
        to_state: str,
        trigger: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.logger.info(
            "session_transition",
            conversation_id=conversation_id,
            transition=f"{from_state}->{to_state}",
            trigger=trigger,
            **(details or {})
        )

    def log_provider_call(
        self,
        provider: str,
        operation: str,
        conversation_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        fields = {
            "provider": provider,
            "operation": operation,
            "conversation_id": conversation_id,
            "duration_ms": round(duration_ms, 2) if duration_ms is not None else None,
        }
        if success:
            self.logger.info("provider_call", **fields)
        else:
            self.logger.warning("provider_call_failed", error=error, **fields)

    def log_command_execution(
        self,
        conversation_id: str,
        target: str,
        command: str,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Every confirmed command is audited, failed or not"""

        fields = {
            "conversation_id": conversation_id,
            "target": target,
            "command": command,
            "duration_ms": round(duration_ms, 2) if duration_ms is not None else None,
        }
        if success:
            self.logger.info("command_execution", **fields)
        else:
            self.logger.warning("command_execution_failed", error=error, **fields)

    def log_provider_switch(
        self,
        from_provider: Optional[str],
        to_provider: str,
        persisted: bool,
        warning: Optional[str] = None
    ):
        log = self.logger.info if persisted else self.logger.warning
        log("provider_switch", from_provider=from_provider, to_provider=to_provider, persisted=persisted, warning=warning)


sentinel_logger = SentinelLogger("sentinel")


TagKey = Tuple[Tuple[str, str], ...]


class MetricsCollector:
    """In-process latency and counter aggregates, broken down by tags"""

    def __init__(self):
        self.latencies: Dict[str, Dict[str, float]] = {}
        self.counters: Dict[str, Dict[TagKey, int]] = defaultdict(lambda: defaultdict(int))
        self.started_at = datetime.utcnow()

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        stats = self.latencies.setdefault(
            operation, {"count": 0, "total_ms": 0.0, "min_ms": duration_ms, "max_ms": duration_ms}
        )
        stats["count"] += 1
        stats["total_ms"] += duration_ms
        stats["min_ms"] = min(stats["min_ms"], duration_ms)
        stats["max_ms"] = max(stats["max_ms"], duration_ms)

        sentinel_logger.logger.debug("metric.latency", operation=operation, duration_ms=duration_ms, **(tags or {}))

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        key: TagKey = tuple(sorted((tags or {}).items()))
        self.counters[name][key] += value

        sentinel_logger.logger.debug("metric.counter", name=name, value=value, **(tags or {}))

    def counter_total(self, name: str) -> int:
        return sum(self.counters.get(name, {}).values())

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Counters as totals plus per-tag breakdown; latencies as count/avg/min/max"""

        summary: Dict[str, Any] = {}
        for name, by_tags in self.counters.items():
            summary[name] = sum(by_tags.values())
            summary[f"{name}.by_tag"] = [
                {"tags": dict(key), "value": value} for key, value in by_tags.items()
            ]

        for operation, stats in self.latencies.items():
            summary[f"latency.{operation}"] = {
                "count": stats["count"],
                "avg": stats["total_ms"] / stats["count"],
                "min": stats["min_ms"],
                "max": stats["max_ms"],
            }

        summary["uptime_seconds"] = (datetime.utcnow() - self.started_at).total_seconds()
        return summary

    def reset(self):
        self.latencies.clear()
        self.counters.clear()
        self.started_at = datetime.utcnow()


metrics = MetricsCollector()
