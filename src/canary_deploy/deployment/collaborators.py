"""
External collaborators of the deployment controller.

The security scanner vetoes unsafe deployments and the metrics source
supplies the signals the health loop evaluates. Both are abstract so real
integrations can be plugged in; the implementations here cover local runs
and tests.
"""

import builtins
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from .models import BlockDecision, DeploymentMetrics, MetricValues, ScanResult

logger = logging.getLogger(__name__)


class SecurityScanner(ABC):
    """Pre-deployment security gate."""

    @abstractmethod
    async def run_security_scan(self) -> ScanResult:
        """Scan the artifact about to be deployed."""

    @abstractmethod
    async def should_block_deployment(self, scan_result: ScanResult) -> BlockDecision:
        """Decide whether the scan result vetoes the deployment."""


class MetricsSource(ABC):
    """Supplies operational metrics for a deployed version."""

    @abstractmethod
    async def collect_metrics(self, version: str) -> DeploymentMetrics:
        """Return a current snapshot for version."""


class SeverityThresholdScanner(SecurityScanner):
    """Block when findings exceed per-severity limits.

    ``findings_provider`` returns a mapping of severity name to finding count,
    e.g. ``{"critical": 0, "high": 2}``.
    """

    def __init__(
        self,
        findings_provider: Callable[[], Awaitable[builtins.dict[str, int]]] | None = None,
        max_critical: int = 0,
        max_high: int = 5,
    ):
        self.findings_provider = findings_provider
        self.max_critical = max_critical
        self.max_high = max_high

    async def run_security_scan(self) -> ScanResult:
        findings = await self.findings_provider() if self.findings_provider else {}
        return ScanResult(findings=dict(findings))

    async def should_block_deployment(self, scan_result: ScanResult) -> BlockDecision:
        critical = scan_result.count("critical")
        high = scan_result.count("high")

        if critical > self.max_critical:
            return BlockDecision(
                blocked=True,
                reason=f"{critical} critical vulnerabilities found (limit {self.max_critical})",
            )
        if high > self.max_high:
            return BlockDecision(
                blocked=True,
                reason=f"{high} high severity vulnerabilities found (limit {self.max_high})",
            )
        return BlockDecision(blocked=False, reason="Security scan passed")


class SimulatedMetricsSource(MetricsSource):
    """Random metrics for local runs, in the ranges a real service would report."""

    def __init__(self, seed: int | None = None):
        self._random = random.Random(seed)

    async def collect_metrics(self, version: str) -> DeploymentMetrics:
        rng = self._random
        return DeploymentMetrics(
            version=version,
            metrics=MetricValues(
                error_rate=rng.random() * 0.02,
                response_time=rng.random() * 1000,
                cpu_usage=rng.random() * 100,
                memory_usage=rng.random() * 100,
                active_users=rng.randrange(1000),
            ),
        )


class StaticMetricsSource(MetricsSource):
    """Serve preset metric values per version."""

    def __init__(self, default: MetricValues | None = None):
        self.default = default or MetricValues()
        self.values: builtins.dict[str, MetricValues] = {}

    def set_metrics(self, version: str, values: MetricValues) -> None:
        self.values[version] = values

    async def collect_metrics(self, version: str) -> DeploymentMetrics:
        return DeploymentMetrics(version=version, metrics=self.values.get(version, self.default))
