"""Timeout and retry patterns for collaborator calls."""

from .policy import ResiliencePolicy
from .retry import (
    ConstantBackoff,
    ExponentialBackoff,
    LinearBackoff,
    RetryConfig,
    RetryError,
    RetryManager,
    RetryStrategy,
)
from .timeouts import AsyncTimeoutManager, TimeoutConfig, TimeoutException

__all__ = [
    "AsyncTimeoutManager",
    "ConstantBackoff",
    "ExponentialBackoff",
    "LinearBackoff",
    "ResiliencePolicy",
    "RetryConfig",
    "RetryError",
    "RetryManager",
    "RetryStrategy",
    "TimeoutConfig",
    "TimeoutException",
]
