"""
Retry Pattern Implementation

Bounded retries with exponential, linear or constant backoff and optional
jitter, used around config store and metrics source calls.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


class RetryStrategy(Enum):
    """Retry strategy types."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int, last_exception: Exception | None):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    # Maximum number of attempts, including the first one
    max_attempts: int = 3

    # Base delay between retries (seconds)
    base_delay: float = 1.0

    # Maximum delay between retries (seconds)
    max_delay: float = 60.0

    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    backoff_multiplier: float = 2.0

    jitter: bool = True
    jitter_factor: float = 0.1

    # Exception types that trigger retries
    retryable_exceptions: tuple = (Exception,)

    # Exception types that should not be retried
    non_retryable_exceptions: tuple = ()


class BackoffStrategy(ABC):
    """Abstract base class for backoff strategies."""

    def __init__(self, jitter: bool = True, jitter_factor: float = 0.1):
        self.jitter = jitter
        self.jitter_factor = jitter_factor

    @abstractmethod
    def base_delay_for(self, attempt: int, base_delay: float) -> float:
        """Delay before jitter and capping."""

    def calculate_delay(self, attempt: int, base_delay: float, max_delay: float) -> float:
        delay = min(self.base_delay_for(attempt, base_delay), max_delay)

        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay


class ExponentialBackoff(BackoffStrategy):
    """Exponential backoff with optional jitter."""

    def __init__(self, multiplier: float = 2.0, jitter: bool = True, jitter_factor: float = 0.1):
        super().__init__(jitter, jitter_factor)
        self.multiplier = multiplier

    def base_delay_for(self, attempt: int, base_delay: float) -> float:
        return base_delay * (self.multiplier ** (attempt - 1))


class LinearBackoff(BackoffStrategy):
    """Linear backoff with optional jitter."""

    def __init__(self, increment: float = 1.0, jitter: bool = True, jitter_factor: float = 0.1):
        super().__init__(jitter, jitter_factor)
        self.increment = increment

    def base_delay_for(self, attempt: int, base_delay: float) -> float:
        return base_delay + self.increment * (attempt - 1)


class ConstantBackoff(BackoffStrategy):
    """Constant delay with optional jitter."""

    def base_delay_for(self, attempt: int, base_delay: float) -> float:
        return base_delay


class RetryManager:
    """Manages retry logic with configurable strategies."""

    def __init__(self, config: RetryConfig):
        self.config = config
        self._backoff_strategy = self._create_backoff_strategy()

    def _create_backoff_strategy(self) -> BackoffStrategy:
        if self.config.strategy == RetryStrategy.LINEAR:
            return LinearBackoff(
                increment=self.config.base_delay,
                jitter=self.config.jitter,
                jitter_factor=self.config.jitter_factor,
            )
        if self.config.strategy == RetryStrategy.CONSTANT:
            return ConstantBackoff(
                jitter=self.config.jitter, jitter_factor=self.config.jitter_factor
            )
        return ExponentialBackoff(
            multiplier=self.config.backoff_multiplier,
            jitter=self.config.jitter,
            jitter_factor=self.config.jitter_factor,
        )

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts:
            return False
        if isinstance(exception, self.config.non_retryable_exceptions):
            return False
        return isinstance(exception, self.config.retryable_exceptions)

    def calculate_delay(self, attempt: int) -> float:
        return self._backoff_strategy.calculate_delay(
            attempt, self.config.base_delay, self.config.max_delay
        )

    async def execute_async(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Execute async function with retry logic.

        Non-retryable exceptions propagate unchanged; anything else that is
        still failing on the last attempt is wrapped in RetryError.
        """
        last_exception: Exception | None = None
        attempt = 0

        for attempt in range(1, self.config.max_attempts + 1):
            try:
                result = await func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"Function succeeded on attempt {attempt}")
                return result

            except Exception as e:
                if isinstance(e, self.config.non_retryable_exceptions):
                    raise
                last_exception = e
                logger.warning(f"Attempt {attempt}/{self.config.max_attempts} failed: {e!s}")

                if not self._should_retry(e, attempt):
                    break

                delay = self.calculate_delay(attempt)
                logger.debug(f"Waiting {delay:.2f} seconds before retry")
                await asyncio.sleep(delay)

        raise RetryError(
            f"Function failed after {attempt} attempts",
            attempt,
            last_exception,
        )
