"""Canary deployment controller."""

from .collaborators import (
    MetricsSource,
    SecurityScanner,
    SeverityThresholdScanner,
    SimulatedMetricsSource,
    StaticMetricsSource,
)
from .enums import CanaryStatus, DeploymentState
from .health import (
    DEFAULT_THRESHOLDS,
    HealthReport,
    HealthThresholds,
    check_metrics_health,
    evaluate_health,
)
from .models import (
    BlockDecision,
    CanarySettings,
    CanaryState,
    DeploymentConfig,
    DeploymentMetrics,
    MetricValues,
    ScanResult,
    load_deployment_config,
)
from .repository import DeploymentRepository
from .routing import route_to_canary, routing_bucket
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler
from .service import DeploymentService, create_deployment_service
from .state_machine import ALLOWED_TRANSITIONS, can_transition, next_state

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DEFAULT_THRESHOLDS",
    "AsyncioScheduler",
    "BlockDecision",
    "CanarySettings",
    "CanaryState",
    "CanaryStatus",
    "DeploymentConfig",
    "DeploymentMetrics",
    "DeploymentRepository",
    "DeploymentService",
    "DeploymentState",
    "HealthReport",
    "HealthThresholds",
    "ManualScheduler",
    "MetricValues",
    "MetricsSource",
    "ScanResult",
    "Scheduler",
    "SecurityScanner",
    "SeverityThresholdScanner",
    "SimulatedMetricsSource",
    "StaticMetricsSource",
    "can_transition",
    "check_metrics_health",
    "create_deployment_service",
    "evaluate_health",
    "load_deployment_config",
    "next_state",
    "route_to_canary",
    "routing_bucket",
]
