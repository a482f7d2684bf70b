"""
Audit events emitted by the deployment controller.

Rollbacks, blocked deployments and promotions are recorded as audit events
so they can be shipped to a security/event sink independently of regular
application logs.
"""

import builtins
import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class AuditEventType(Enum):
    """Types of deployment audit events."""

    DEPLOYMENT_STARTED = "deployment_started"
    DEPLOYMENT_BLOCKED = "deployment_blocked"
    DEPLOYMENT_FAILED = "deployment_failed"
    DEPLOYMENT_ROLLBACK = "deployment_rollback"
    CANARY_STARTED = "canary_started"
    CANARY_PROMOTED = "canary_promoted"
    CANARY_STOPPED = "canary_stopped"
    FULL_DEPLOYMENT = "full_deployment"


class AuditSeverity(Enum):
    """Audit event severity levels."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class AuditEvent:
    """A single audit record."""

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO
    details: builtins.dict[str, Any] = field(default_factory=dict)
    message: str = ""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    service_name: str | None = None

    @property
    def type(self) -> str:
        return self.event_type.value

    def to_dict(self) -> builtins.dict[str, Any]:
        """Convert audit event to a JSON-friendly dictionary."""
        data = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, Enum):
                data[key] = value.value
            elif isinstance(value, datetime):
                data[key] = value.isoformat()
            else:
                data[key] = value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)
