"""Audit event destinations."""

import logging
from abc import ABC, abstractmethod
from collections import deque

from .events import AuditEvent, AuditEventType, AuditSeverity

_SEVERITY_LEVELS = {
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.LOW: logging.INFO,
    AuditSeverity.MEDIUM: logging.WARNING,
    AuditSeverity.HIGH: logging.WARNING,
    AuditSeverity.CRITICAL: logging.CRITICAL,
}


class AuditSink(ABC):
    """Destination for audit events."""

    @abstractmethod
    async def log_event(self, event: AuditEvent) -> None:
        """Record an audit event."""

    async def close(self) -> None:
        """Release sink resources."""


class LoggingAuditSink(AuditSink):
    """Write audit events to a dedicated logger as JSON."""

    def __init__(self, logger_name: str = "canary_deploy.audit"):
        self.logger = logging.getLogger(logger_name)

    async def log_event(self, event: AuditEvent) -> None:
        self.logger.log(
            _SEVERITY_LEVELS.get(event.severity, logging.INFO),
            event.to_json(),
            extra={"audit_event_type": event.type, "audit_severity": event.severity.value},
        )


class InMemoryAuditSink(AuditSink):
    """Keep recent audit events in memory."""

    def __init__(self, max_events: int = 1000):
        self.events: deque[AuditEvent] = deque(maxlen=max_events)

    async def log_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def find(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [event for event in self.events if event.event_type == event_type]
