"""
Shared fixtures for the deployment controller tests.

Services are wired with an in-memory store, a manually ticked scheduler and
static metrics so every health-loop iteration is driven by the test.
"""

import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from canary_deploy.audit import InMemoryAuditSink
from canary_deploy.config import DeploymentSettings
from canary_deploy.deployment import (
    BlockDecision,
    CanarySettings,
    DeploymentConfig,
    DeploymentService,
    ManualScheduler,
    MetricValues,
    ScanResult,
    SecurityScanner,
    StaticMetricsSource,
)
from canary_deploy.store import InMemoryConfigStore

HEALTHY_METRICS = MetricValues(
    error_rate=0.002, response_time=180.0, cpu_usage=45.0, memory_usage=55.0, active_users=120
)


@pytest.fixture
def settings():
    """Settings with fast, single-attempt collaborator calls."""
    return DeploymentSettings(
        _env_file=None,
        service_name="deployment-controller-test",
        check_interval_seconds=60,
        retry_max_attempts=1,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        store_timeout_seconds=1.0,
        metrics_timeout_seconds=1.0,
    )


@pytest.fixture
def store():
    return InMemoryConfigStore()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def metrics_source():
    return StaticMetricsSource(default=HEALTHY_METRICS)


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def security_scanner():
    """Scanner mock that passes every deployment."""
    scanner = MagicMock(spec=SecurityScanner)
    scanner.run_security_scan = AsyncMock(return_value=ScanResult(findings={"high": 1}))
    scanner.should_block_deployment = AsyncMock(
        return_value=BlockDecision(blocked=False, reason="Security scan passed")
    )
    return scanner


@pytest.fixture
def service(store, security_scanner, metrics_source, audit_sink, scheduler, settings):
    return DeploymentService(
        store=store,
        security_scanner=security_scanner,
        metrics_source=metrics_source,
        audit_sink=audit_sink,
        scheduler=scheduler,
        settings=settings,
        rng=random.Random(7),
        instance_id="test-instance",
    )


@pytest.fixture
def canary_config():
    return DeploymentConfig(
        version="v2",
        environment="production",
        features={"new_checkout": True, "dark_mode": False},
        canary=CanarySettings(
            enabled=True, percentage=10, metrics=["errorRate", "conversionRate"]
        ),
    )


@pytest.fixture
def full_config():
    return DeploymentConfig(
        version="v2",
        environment="production",
        features={"new_checkout": True},
    )
