"""Combined timeout and retry policy for collaborator calls."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from canary_deploy.errors import CollaboratorTimeoutError, CollaboratorUnavailableError

from .retry import RetryConfig, RetryError, RetryManager
from .timeouts import AsyncTimeoutManager, TimeoutConfig, TimeoutException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ResiliencePolicy:
    """Apply a per-attempt timeout and a bounded retry to an async call."""

    def __init__(self, timeout_seconds: float, retry_config: RetryConfig | None = None):
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config or RetryConfig()
        self._retry_manager = RetryManager(self.retry_config)
        self._timeouts: dict[str, AsyncTimeoutManager] = {}

    def _timeout_manager(self, name: str) -> AsyncTimeoutManager:
        if name not in self._timeouts:
            self._timeouts[name] = AsyncTimeoutManager(
                TimeoutConfig(name=name, timeout_seconds=self.timeout_seconds)
            )
        return self._timeouts[name]

    async def call(
        self, name: str, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Run ``func`` under the policy.

        Raises:
            CollaboratorTimeoutError: the final attempt timed out
            CollaboratorUnavailableError: every attempt failed
        """
        timeout_manager = self._timeout_manager(name)

        async def attempt() -> T:
            return await timeout_manager.execute(func(*args, **kwargs))

        try:
            return await self._retry_manager.execute_async(attempt)
        except RetryError as e:
            if isinstance(e.last_exception, TimeoutException):
                raise CollaboratorTimeoutError(name, e.attempts, e.last_exception) from e
            raise CollaboratorUnavailableError(name, e.attempts, e.last_exception) from e

    @classmethod
    def no_retry(cls, timeout_seconds: float) -> "ResiliencePolicy":
        return cls(timeout_seconds, RetryConfig(max_attempts=1, base_delay=0.0, jitter=False))
