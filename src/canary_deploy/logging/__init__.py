"""
Structured logging for the deployment controller.

Log records carry the service name, the current OpenTelemetry trace context,
and a correlation ID. JSON output merges any ``extra={...}`` fields into the
emitted document so deployment context (version, environment, percentage)
stays machine-readable.
"""

import json
import logging
import sys
import uuid
from datetime import datetime
from typing import Any

from opentelemetry import trace

TRACE_LOG_FORMAT = (
    "%(asctime)s - %(levelname)s - [%(service_name)s] - [%(trace_id)s:%(span_id)s] - "
    "[%(name)s] - %(message)s"
)

LOG_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

LOG_OFF_LEVEL = "OFF"

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
        "service_name",
        "trace_id",
        "span_id",
        "correlation_id",
    }
)


class ServiceNameFilter(logging.Filter):
    """Inject the service name into log records."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name  # type: ignore[attr-defined]
        return True


class TraceContextFilter(logging.Filter):
    """Inject trace_id and span_id from the active span."""

    def filter(self, record: logging.LogRecord) -> bool:
        span = trace.get_current_span()
        span_context = span.get_span_context() if span else None
        if span_context is not None and span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")  # type: ignore[attr-defined]
            record.span_id = format(span_context.span_id, "016x")  # type: ignore[attr-defined]
        else:
            record.trace_id = "0" * 32  # type: ignore[attr-defined]
            record.span_id = "0" * 16  # type: ignore[attr-defined]
        return True


class CorrelationFilter(logging.Filter):
    """Inject a correlation ID into log records."""

    def __init__(self, correlation_id: str | None = None) -> None:
        super().__init__()
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = self.correlation_id  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_trace: bool = True, include_correlation: bool = True):
        super().__init__()
        self.include_trace = include_trace
        self.include_correlation = include_correlation

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service_name", "unknown"),
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if self.include_trace:
            trace_id = getattr(record, "trace_id", None)
            span_id = getattr(record, "span_id", None)
            if trace_id and span_id:
                log_entry["trace_id"] = trace_id
                log_entry["span_id"] = span_id

        if self.include_correlation:
            correlation_id = getattr(record, "correlation_id", None)
            if correlation_id:
                log_entry["correlation_id"] = correlation_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    correlation_id: str | None = None,
    logger_name: str = "canary_deploy",
) -> logging.Logger:
    """
    Configure the package logger.

    Installs a single stdout handler on ``logger_name`` (replacing any handler
    from a previous call) and returns the configured logger.
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    level = log_level.upper()
    if level == LOG_OFF_LEVEL:
        logger.setLevel(logging.CRITICAL + 1)
    else:
        logger.setLevel(LOG_LEVELS.get(level, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TRACE_LOG_FORMAT))

    handler.addFilter(ServiceNameFilter(service_name))
    handler.addFilter(TraceContextFilter())
    handler.addFilter(CorrelationFilter(correlation_id))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


__all__ = [
    "CorrelationFilter",
    "JSONFormatter",
    "LOG_LEVELS",
    "ServiceNameFilter",
    "TRACE_LOG_FORMAT",
    "TraceContextFilter",
    "setup_logging",
]
