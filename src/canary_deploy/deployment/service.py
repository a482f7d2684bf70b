"""
Deployment controller.

Starts deployments behind a security gate, runs canary rollouts with a
periodic health check that doubles traffic while the canary stays healthy,
and rolls back to the environment's previous version when it does not.
"""

import builtins
import logging
import random
import uuid
from typing import Any

from opentelemetry import trace

from canary_deploy.audit import (
    AuditEvent,
    AuditEventType,
    AuditSeverity,
    AuditSink,
    LoggingAuditSink,
)
from canary_deploy.config import DeploymentSettings
from canary_deploy.errors import (
    DeploymentBlockedError,
    DeploymentConfigNotFoundError,
    PreviousVersionNotFoundError,
)
from canary_deploy.logging import setup_logging
from canary_deploy.resilience import ResiliencePolicy, RetryConfig
from canary_deploy.store import ConfigStore, DeploymentKeys, create_config_store

from .collaborators import (
    MetricsSource,
    SecurityScanner,
    SeverityThresholdScanner,
    SimulatedMetricsSource,
)
from .enums import CanaryStatus, DeploymentState
from .health import HealthReport, evaluate_health
from .models import CanaryState, DeploymentConfig, DeploymentMetrics
from .repository import DeploymentRepository
from .routing import route_to_canary
from .scheduler import AsyncioScheduler, Scheduler
from .state_machine import next_state

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ROLLBACK_REASON_UNHEALTHY = "Unhealthy metrics detected"


class DeploymentService:
    """Canary deployment controller."""

    def __init__(
        self,
        store: ConfigStore | None = None,
        security_scanner: SecurityScanner | None = None,
        metrics_source: MetricsSource | None = None,
        audit_sink: AuditSink | None = None,
        scheduler: Scheduler | None = None,
        settings: DeploymentSettings | None = None,
        rng: random.Random | None = None,
        instance_id: str | None = None,
    ):
        self.settings = settings or DeploymentSettings()
        retry_config = RetryConfig(
            max_attempts=self.settings.retry_max_attempts,
            base_delay=self.settings.retry_base_delay,
            max_delay=self.settings.retry_max_delay,
            strategy=self.settings.retry_strategy,
        )

        self.repository = DeploymentRepository(
            store or create_config_store(self.settings),
            DeploymentKeys(self.settings.key_prefix),
            ResiliencePolicy(self.settings.store_timeout_seconds, retry_config),
        )
        self.metrics_policy = ResiliencePolicy(self.settings.metrics_timeout_seconds, retry_config)

        self.security_scanner = security_scanner or SeverityThresholdScanner()
        self.metrics_source = metrics_source or SimulatedMetricsSource()
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.scheduler = scheduler or AsyncioScheduler()
        self.instance_id = instance_id or str(uuid.uuid4())

        self._rng = rng or random.Random()
        # Configs of canaries whose health loop this process owns
        self._monitored: builtins.dict[str, DeploymentConfig] = {}

    # Deployment start

    async def start_deployment(self, config: DeploymentConfig) -> None:
        """Start a deployment.

        Raises:
            DeploymentBlockedError: the security scan vetoed the deployment
        """
        with tracer.start_as_current_span("deployment.start") as span:
            span.set_attribute("deployment.version", config.version)
            span.set_attribute("deployment.environment", config.environment)
            try:
                scan_result = await self.security_scanner.run_security_scan()
                decision = await self.security_scanner.should_block_deployment(scan_result)

                if decision.blocked:
                    await self._audit(
                        AuditEventType.DEPLOYMENT_BLOCKED,
                        AuditSeverity.HIGH,
                        {"version": config.version, "reason": decision.reason},
                    )
                    raise DeploymentBlockedError(decision.reason)

                # A redeploy of the same version replaces a canary still running for it
                if (
                    self.scheduler.is_scheduled(config.version)
                    or await self.repository.get_canary(config.version) is not None
                ):
                    await self.stop_canary(config.version)

                await self.repository.save_config(config)
                await self.repository.set_state(config.version, DeploymentState.PENDING)

                if config.canary.enabled:
                    await self.start_canary_deployment(config)
                else:
                    await self.full_deployment(config)

                logger.info("Deployment started", extra={"deployment_config": config.to_dict()})
                await self._audit(
                    AuditEventType.DEPLOYMENT_STARTED,
                    AuditSeverity.INFO,
                    {
                        "version": config.version,
                        "environment": config.environment,
                        "canary": config.canary.enabled,
                    },
                )
            except Exception as e:
                logger.error(
                    "Deployment failed to start",
                    extra={"deployment_config": config.to_dict(), "error": str(e)},
                )
                if not isinstance(e, DeploymentBlockedError):
                    await self._audit(
                        AuditEventType.DEPLOYMENT_FAILED,
                        AuditSeverity.HIGH,
                        {"version": config.version, "error": str(e)},
                    )
                raise

    async def start_canary_deployment(self, config: DeploymentConfig) -> CanaryState:
        """Begin a canary at the configured percentage and start its health loop."""
        version = config.version
        try:
            await self._require_transition(version, DeploymentState.CANARY_ACTIVE)
            await self._record_previous_version(config)

            state = CanaryState(percentage=config.canary.percentage)
            await self.repository.create_canary(version, state)
            try:
                await self._start_monitoring(config)
                await self.repository.set_state(version, DeploymentState.CANARY_ACTIVE)
            except Exception:
                await self._discard_canary(version)
                raise

            logger.info(
                "Canary deployment started",
                extra={"version": version, "percentage": state.percentage},
            )
            await self._audit(
                AuditEventType.CANARY_STARTED,
                AuditSeverity.INFO,
                {"version": version, "percentage": state.percentage},
            )
            return state
        except Exception as e:
            logger.error(
                "Canary deployment failed",
                extra={"deployment_config": config.to_dict(), "error": str(e)},
            )
            raise

    # Health loop

    async def _start_monitoring(self, config: DeploymentConfig) -> None:
        version = config.version

        async def tick() -> None:
            await self.run_health_check(version)

        self.scheduler.schedule(version, self.settings.check_interval_seconds, tick)
        self._monitored[version] = config
        await self.repository.set_monitoring(version, self.instance_id)

    async def _discard_canary(self, version: str) -> None:
        """Tear down a canary whose start did not complete."""
        # The loop must stop even if the store is unreachable
        self.scheduler.cancel(version)
        self._monitored.pop(version, None)

        # Canary record first: while it exists the router keeps sending traffic
        for cleanup in (self.repository.delete_canary, self.repository.clear_monitoring):
            try:
                await cleanup(version)
            except Exception as cleanup_error:
                logger.warning(
                    "Could not clean up canary after failed start",
                    extra={"version": version, "error": str(cleanup_error)},
                )
        logger.info("Canary discarded after failed start", extra={"version": version})

    async def _stop_monitoring(self, version: str) -> bool:
        cancelled = self.scheduler.cancel(version)
        self._monitored.pop(version, None)
        await self.repository.clear_monitoring(version)
        return cancelled

    async def run_health_check(self, version: str) -> HealthReport | None:
        """One health-loop iteration for ``version``.

        Errors are logged and stop the loop for this version; they are not
        raised since nothing awaits the tick.
        """
        with tracer.start_as_current_span("deployment.health_check") as span:
            span.set_attribute("deployment.version", version)
            try:
                canary = await self.repository.get_canary(version)
                if canary is None or not canary.is_active:
                    logger.info(
                        "Canary no longer active, stopping health checks",
                        extra={"version": version},
                    )
                    await self._stop_monitoring(version)
                    return None

                config = self._monitored.get(version) or await self.repository.get_config(
                    version
                )
                if config is None:
                    raise DeploymentConfigNotFoundError(version)

                metrics = await self.metrics_policy.call(
                    "metrics.collect", self.metrics_source.collect_metrics, version
                )
                return await self.evaluate_canary_health(config, metrics)

            except Exception as e:
                logger.error(
                    "Canary monitoring failed", extra={"version": version, "error": str(e)}
                )
                self.scheduler.cancel(version)
                self._monitored.pop(version, None)
                try:
                    await self.repository.clear_monitoring(version)
                except Exception as cleanup_error:
                    logger.warning(
                        "Could not clear monitoring flag",
                        extra={"version": version, "error": str(cleanup_error)},
                    )
                return None

    async def evaluate_canary_health(
        self, config: DeploymentConfig, metrics: DeploymentMetrics
    ) -> HealthReport:
        """Roll back on unhealthy metrics, otherwise double the canary traffic."""
        version = config.version
        try:
            report = evaluate_health(metrics, config.canary.metrics)

            if not report.healthy:
                logger.warning(
                    "Canary unhealthy, rolling back",
                    extra={"version": version, "violations": report.violations},
                )
                await self.rollback_deployment(version)
                return report

            canary = await self.repository.get_canary(version)
            if canary is None or not canary.is_active:
                return report

            if canary.percentage < 100:
                await self.update_canary_percentage(
                    version, min(canary.percentage * 2, 100), expected_revision=canary.revision
                )
            elif self.settings.auto_promote:
                await self.promote_canary(version)

            return report
        except Exception as e:
            logger.error(
                "Canary health evaluation failed",
                extra={"version": version, "metrics": metrics.to_dict(), "error": str(e)},
            )
            raise

    async def update_canary_percentage(
        self, version: str, percentage: float | int, expected_revision: int | None = None
    ) -> CanaryState | None:
        """Set the canary traffic percentage.

        Returns None when no canary exists for the version.

        Raises:
            ValueError: percentage out of range, or lower than an active canary's
            ConcurrentModificationError: the stored revision is not ``expected_revision``
        """
        if isinstance(percentage, bool) or not 0 <= percentage <= 100:
            raise ValueError(f"percentage must be between 0 and 100, got {percentage}")

        canary = await self.repository.get_canary(version)
        if canary is None:
            return None

        if canary.is_active and percentage < canary.percentage:
            raise ValueError(
                f"Canary percentage cannot decrease ({canary.percentage} -> {percentage})"
            )

        revision = canary.revision if expected_revision is None else expected_revision
        canary.percentage = percentage
        updated = await self.repository.update_canary(version, canary, revision)

        logger.info(
            "Canary percentage updated", extra={"version": version, "percentage": percentage}
        )
        return updated

    # Finalization

    async def full_deployment(self, config: DeploymentConfig) -> None:
        """Point the environment at ``config.version`` and publish its feature flags."""
        version = config.version
        try:
            await self._require_transition(version, DeploymentState.FULL)
            await self._record_previous_version(config)

            await self.repository.set_active_version(config.environment, version)
            await self.repository.save_features(version, config.features)
            await self.repository.set_state(version, DeploymentState.FULL)

            logger.info("Full deployment completed", extra={"deployment_config": config.to_dict()})
            await self._audit(
                AuditEventType.FULL_DEPLOYMENT,
                AuditSeverity.INFO,
                {"version": version, "environment": config.environment},
            )
        except Exception as e:
            logger.error(
                "Full deployment failed",
                extra={"deployment_config": config.to_dict(), "error": str(e)},
            )
            raise

    async def promote_canary(self, version: str) -> None:
        """Turn a canary into a full deployment and stop its health loop."""
        config = await self.repository.get_config(version)
        if config is None:
            raise DeploymentConfigNotFoundError(version)

        await self.full_deployment(config)
        await self._stop_monitoring(version)

        canary = await self.repository.get_canary(version)
        if canary is not None and canary.is_active:
            canary.status = CanaryStatus.STOPPED
            await self.repository.update_canary(version, canary, canary.revision)

        logger.info("Canary promoted", extra={"version": version})
        await self._audit(
            AuditEventType.CANARY_PROMOTED,
            AuditSeverity.MEDIUM,
            {"version": version, "environment": config.environment},
        )

    async def rollback_deployment(
        self, version: str, reason: str = ROLLBACK_REASON_UNHEALTHY
    ) -> str:
        """Restore the environment's previous version and tear down the canary.

        Returns the version that was restored.

        Raises:
            DeploymentConfigNotFoundError: no config is stored for ``version``
            PreviousVersionNotFoundError: the environment has no previous version
        """
        with tracer.start_as_current_span("deployment.rollback") as span:
            span.set_attribute("deployment.version", version)
            try:
                config = await self.repository.get_config(version)
                if config is None:
                    raise DeploymentConfigNotFoundError(version)

                previous_version = await self.repository.get_previous_version(config.environment)
                if not previous_version:
                    raise PreviousVersionNotFoundError(config.environment)

                await self._require_transition(version, DeploymentState.ROLLING_BACK)
                await self.repository.set_state(version, DeploymentState.ROLLING_BACK)

                await self.repository.set_active_version(config.environment, previous_version)
                await self.stop_canary(version)

                await self._audit(
                    AuditEventType.DEPLOYMENT_ROLLBACK,
                    AuditSeverity.HIGH,
                    {
                        "version": version,
                        "previous_version": previous_version,
                        "reason": reason,
                    },
                )
                await self.repository.set_state(version, DeploymentState.ROLLED_BACK)

                logger.info(
                    "Deployment rolled back",
                    extra={"version": version, "previous_version": previous_version},
                )
                return previous_version
            except Exception as e:
                logger.error("Rollback failed", extra={"version": version, "error": str(e)})
                raise

    async def stop_canary(self, version: str) -> bool:
        """Cancel the health loop and delete the canary state for ``version``."""
        cancelled = await self._stop_monitoring(version)
        deleted = await self.repository.delete_canary(version)

        if cancelled or deleted:
            logger.info("Canary stopped", extra={"version": version})
            await self._audit(
                AuditEventType.CANARY_STOPPED,
                AuditSeverity.LOW,
                {"version": version, "loop_cancelled": cancelled},
            )
        return cancelled or deleted

    # Routing and queries

    async def should_route_to_canary(self, version: str, routing_key: str | None = None) -> bool:
        """Decide whether one request goes to the canary of ``version``.

        Pass a stable ``routing_key`` (user or session id) for sticky assignment.
        """
        state = await self.repository.get_canary(version)
        return route_to_canary(state, version, routing_key, self._rng)

    async def get_deployment_config(self, version: str) -> DeploymentConfig | None:
        return await self.repository.get_config(version)

    async def get_canary_state(self, version: str) -> CanaryState | None:
        return await self.repository.get_canary(version)

    async def get_active_version(self, environment: str) -> str | None:
        return await self.repository.get_active_version(environment)

    async def get_previous_version(self, environment: str) -> str | None:
        return await self.repository.get_previous_version(environment)

    async def get_deployment_state(self, version: str) -> DeploymentState | None:
        return await self.repository.get_state(version)

    async def get_feature_flags(self, version: str) -> builtins.dict[str, bool]:
        return await self.repository.get_features(version) or {}

    async def is_feature_enabled(self, version: str, feature: str) -> bool:
        flags = await self.get_feature_flags(version)
        return bool(flags.get(feature, False))

    async def get_deployment_status(self, version: str) -> builtins.dict[str, Any] | None:
        """Summary of a deployment's stored records."""
        config = await self.repository.get_config(version)
        if config is None:
            return None

        canary = await self.repository.get_canary(version)
        state = await self.repository.get_state(version)
        return {
            "version": version,
            "environment": config.environment,
            "state": state.value if state else None,
            "canary": canary.to_dict() if canary else None,
            "monitoring": await self.repository.get_monitoring(version),
            "monitored_here": self.scheduler.is_scheduled(version),
            "active_version": await self.repository.get_active_version(config.environment),
            "previous_version": await self.repository.get_previous_version(config.environment),
        }

    async def shutdown(self) -> None:
        """Stop every health loop owned by this process."""
        versions = self.scheduler.keys()
        # Waits for in-flight ticks to unwind before the flags are cleared
        await self.scheduler.shutdown()
        for version in versions:
            self._monitored.pop(version, None)
            await self.repository.clear_monitoring(version)
        logger.info("Deployment service shut down", extra={"instance_id": self.instance_id})

    # Helpers

    async def _require_transition(self, version: str, target: DeploymentState) -> DeploymentState:
        current = await self.repository.get_state(version) or DeploymentState.PENDING
        return next_state(version, current, target)

    async def _record_previous_version(self, config: DeploymentConfig) -> None:
        active = await self.repository.get_active_version(config.environment)
        if active and active != config.version:
            await self.repository.set_previous_version(config.environment, active)

    async def _audit(
        self, event_type: AuditEventType, severity: AuditSeverity, details: builtins.dict[str, Any]
    ) -> None:
        await self.audit_sink.log_event(
            AuditEvent(
                event_type=event_type,
                severity=severity,
                details=details,
                service_name=self.settings.service_name,
            )
        )


def create_deployment_service(
    settings: DeploymentSettings | None = None,
    configure_logging: bool = True,
    **collaborators: Any,
) -> DeploymentService:
    """Create a deployment service from settings, optionally configuring logging."""
    settings = settings or DeploymentSettings()
    if configure_logging:
        setup_logging(settings.service_name, settings.log_level, settings.log_format)
    return DeploymentService(settings=settings, **collaborators)
