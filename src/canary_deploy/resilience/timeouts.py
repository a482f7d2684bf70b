"""
Timeout protection for async collaborator calls.

A hung metrics source or config store must not stall a canary's health loop
forever, so every call is bounded by an explicit deadline.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class TimeoutConfig:
    """Configuration for timeout operations."""

    name: str
    timeout_seconds: float
    enable_logging: bool = True


@dataclass
class TimeoutMetrics:
    """Metrics for timeout monitoring."""

    total_operations: int = 0
    successful_operations: int = 0
    timeout_operations: int = 0
    max_execution_time: float = 0.0


class TimeoutException(Exception):
    """Exception raised when an operation times out."""

    def __init__(self, message: str, timeout_seconds: float, operation_name: str = ""):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
        self.operation_name = operation_name


class AsyncTimeoutManager:
    """Manager for async operation timeouts."""

    def __init__(self, config: TimeoutConfig):
        self.config = config
        self.metrics = TimeoutMetrics()

    async def execute(self, coro: Awaitable[T], timeout: float | None = None) -> T:
        """Execute an async operation with timeout."""
        timeout_value = timeout or self.config.timeout_seconds
        start_time = time.monotonic()

        try:
            result = await asyncio.wait_for(coro, timeout=timeout_value)
        except asyncio.TimeoutError as e:
            self._update_metrics(False, time.monotonic() - start_time)
            if self.config.enable_logging:
                logger.warning(
                    f"Operation {self.config.name} timed out after {timeout_value} seconds"
                )
            raise TimeoutException(
                f"Operation timed out after {timeout_value} seconds",
                timeout_value,
                self.config.name,
            ) from e

        self._update_metrics(True, time.monotonic() - start_time)
        return result

    def _update_metrics(self, success: bool, execution_time: float) -> None:
        self.metrics.total_operations += 1
        if success:
            self.metrics.successful_operations += 1
        else:
            self.metrics.timeout_operations += 1
        self.metrics.max_execution_time = max(self.metrics.max_execution_time, execution_time)
