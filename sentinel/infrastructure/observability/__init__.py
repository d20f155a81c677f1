from .logging import setup_logging, SentinelLogger, sentinel_logger, MetricsCollector, metrics

__all__ = ["setup_logging", "SentinelLogger", "sentinel_logger", "MetricsCollector", "metrics"]
