"""Data models for deployments, canary state and metrics."""

import builtins
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from canary_deploy.config import ConfigurationError, load_yaml_file
from canary_deploy.errors import InvalidDeploymentConfigError

from .enums import CanaryStatus


def _validate_percentage(value: Any, name: str = "percentage") -> float | int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidDeploymentConfigError(f"{name} must be a number, got {value!r}")
    if not 0 <= value <= 100:
        raise InvalidDeploymentConfigError(f"{name} must be between 0 and 100, got {value}")
    return value


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class CanarySettings:
    """Canary rollout parameters of a deployment."""

    enabled: bool = False
    percentage: float | int = 0
    metrics: builtins.list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        _validate_percentage(self.percentage, "canary.percentage")
        if not isinstance(self.metrics, list) or not all(
            isinstance(name, str) for name in self.metrics
        ):
            raise InvalidDeploymentConfigError(
                f"canary.metrics must be a list of metric names, got {self.metrics!r}"
            )
        self.metrics = list(self.metrics)

    @classmethod
    def from_dict(cls, data: builtins.dict[str, Any]) -> "CanarySettings":
        return cls(
            enabled=bool(data.get("enabled", False)),
            percentage=data.get("percentage", 0),
            metrics=data.get("metrics") or [],
        )

    def to_dict(self) -> builtins.dict[str, Any]:
        return {"enabled": self.enabled, "percentage": self.percentage, "metrics": self.metrics}


@dataclass
class DeploymentConfig:
    """One deployment attempt."""

    version: str
    environment: str
    features: builtins.dict[str, bool] = field(default_factory=dict)
    canary: CanarySettings = field(default_factory=CanarySettings)

    def __post_init__(self) -> None:
        if not self.version or not isinstance(self.version, str):
            raise InvalidDeploymentConfigError("version is required")
        if not self.environment or not isinstance(self.environment, str):
            raise InvalidDeploymentConfigError("environment is required")
        if not isinstance(self.features, dict):
            raise InvalidDeploymentConfigError(
                f"features must be a mapping of flag names, got {self.features!r}"
            )
        self.features = dict(self.features)
        for name, enabled in self.features.items():
            if not isinstance(enabled, bool):
                raise InvalidDeploymentConfigError(f"feature flag {name!r} must be a boolean")

    @classmethod
    def from_dict(cls, data: builtins.dict[str, Any]) -> "DeploymentConfig":
        if not isinstance(data, dict):
            raise InvalidDeploymentConfigError("Deployment config must be a mapping")
        try:
            return cls(
                version=data["version"],
                environment=data["environment"],
                features=data.get("features") or {},
                canary=CanarySettings.from_dict(data.get("canary") or {}),
            )
        except KeyError as e:
            raise InvalidDeploymentConfigError(f"Missing required field: {e.args[0]}") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidDeploymentConfigError(f"Malformed deployment config: {e}") from e

    def to_dict(self) -> builtins.dict[str, Any]:
        return {
            "version": self.version,
            "environment": self.environment,
            "features": dict(self.features),
            "canary": self.canary.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "DeploymentConfig":
        return cls.from_dict(json.loads(raw))


def load_deployment_config(path: str | Path) -> DeploymentConfig:
    """Load a deployment config from a YAML (or JSON) file."""
    try:
        data = load_yaml_file(Path(path))
    except ConfigurationError as e:
        raise InvalidDeploymentConfigError(str(e)) from e
    return DeploymentConfig.from_dict(data)


@dataclass
class CanaryState:
    """Runtime state of an in-flight canary rollout.

    ``revision`` increases on every write and backs optimistic concurrency
    checks on updates.
    """

    percentage: float | int
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: CanaryStatus = CanaryStatus.ACTIVE
    revision: int = 0

    def __post_init__(self) -> None:
        _validate_percentage(self.percentage)

    @property
    def is_active(self) -> bool:
        return self.status == CanaryStatus.ACTIVE

    def to_dict(self) -> builtins.dict[str, Any]:
        return {
            "percentage": self.percentage,
            "startTime": self.start_time.isoformat(),
            "status": self.status.value,
            "revision": self.revision,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: builtins.dict[str, Any]) -> "CanaryState":
        return cls(
            percentage=data["percentage"],
            start_time=_parse_datetime(data.get("startTime") or datetime.now(timezone.utc)),
            status=CanaryStatus(data.get("status", CanaryStatus.ACTIVE.value)),
            revision=int(data.get("revision", 0)),
        )

    @classmethod
    def from_json(cls, raw: str) -> "CanaryState":
        return cls.from_dict(json.loads(raw))


@dataclass
class MetricValues:
    """Operational signals for one version."""

    error_rate: float = 0.0
    response_time: float = 0.0
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    active_users: int = 0
    custom_metrics: builtins.dict[str, float] = field(default_factory=dict)


@dataclass
class DeploymentMetrics:
    """Point-in-time metrics snapshot for a version."""

    version: str
    metrics: MetricValues
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> builtins.dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
            "metrics": {
                "errorRate": self.metrics.error_rate,
                "responseTime": self.metrics.response_time,
                "cpuUsage": self.metrics.cpu_usage,
                "memoryUsage": self.metrics.memory_usage,
                "activeUsers": self.metrics.active_users,
                "customMetrics": dict(self.metrics.custom_metrics),
            },
        }


@dataclass
class ScanResult:
    """Outcome of a pre-deployment security scan."""

    findings: builtins.dict[str, int] = field(default_factory=dict)
    scanned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: builtins.dict[str, Any] = field(default_factory=dict)

    def count(self, severity: str) -> int:
        return int(self.findings.get(severity, 0))


@dataclass
class BlockDecision:
    """Whether a scan result vetoes a deployment."""

    blocked: bool
    reason: str = ""
