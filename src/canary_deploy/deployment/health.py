"""
Canary health evaluation.

A snapshot is healthy only when every built-in signal is within its
threshold. Custom metrics named in a deployment's canary settings are
reported alongside the verdict but never change it.
"""

import builtins
from dataclasses import dataclass, field

from .models import DeploymentMetrics

ERROR_RATE_THRESHOLD = 0.01  # 1%
RESPONSE_TIME_THRESHOLD_MS = 500
CPU_USAGE_THRESHOLD = 80  # %
MEMORY_USAGE_THRESHOLD = 80  # %

BUILTIN_METRICS = ("errorRate", "responseTime", "cpuUsage", "memoryUsage")


@dataclass(frozen=True)
class HealthThresholds:
    """Upper bounds (inclusive) for a healthy snapshot."""

    error_rate: float = ERROR_RATE_THRESHOLD
    response_time: float = RESPONSE_TIME_THRESHOLD_MS
    cpu_usage: float = CPU_USAGE_THRESHOLD
    memory_usage: float = MEMORY_USAGE_THRESHOLD


DEFAULT_THRESHOLDS = HealthThresholds()


@dataclass
class HealthReport:
    """Verdict plus the signals that produced it."""

    healthy: bool
    violations: builtins.dict[str, builtins.dict[str, float]] = field(default_factory=dict)
    informational: builtins.dict[str, float | None] = field(default_factory=dict)


def check_metrics_health(
    metrics: DeploymentMetrics, thresholds: HealthThresholds = DEFAULT_THRESHOLDS
) -> bool:
    """Return True when all four signals are within their thresholds."""
    values = metrics.metrics
    return (
        values.error_rate <= thresholds.error_rate
        and values.response_time <= thresholds.response_time
        and values.cpu_usage <= thresholds.cpu_usage
        and values.memory_usage <= thresholds.memory_usage
    )


def evaluate_health(
    metrics: DeploymentMetrics,
    watched_metrics: builtins.list[str] | None = None,
    thresholds: HealthThresholds = DEFAULT_THRESHOLDS,
) -> HealthReport:
    """Evaluate a snapshot and explain the verdict."""
    values = metrics.metrics
    checks = {
        "errorRate": (values.error_rate, thresholds.error_rate),
        "responseTime": (values.response_time, thresholds.response_time),
        "cpuUsage": (values.cpu_usage, thresholds.cpu_usage),
        "memoryUsage": (values.memory_usage, thresholds.memory_usage),
    }
    violations = {
        name: {"value": value, "threshold": limit}
        for name, (value, limit) in checks.items()
        if value > limit
    }

    informational = {
        name: values.custom_metrics.get(name)
        for name in watched_metrics or []
        if name not in BUILTIN_METRICS
    }

    return HealthReport(
        healthy=check_metrics_health(metrics, thresholds),
        violations=violations,
        informational=informational,
    )
