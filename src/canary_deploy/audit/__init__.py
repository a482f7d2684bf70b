"""Audit logging for deployment lifecycle events."""

from .events import AuditEvent, AuditEventType, AuditSeverity
from .sinks import AuditSink, InMemoryAuditSink, LoggingAuditSink

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditSeverity",
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
]
