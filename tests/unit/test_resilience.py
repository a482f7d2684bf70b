"""Tests for retry and timeout handling of collaborator calls."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from canary_deploy.errors import CollaboratorTimeoutError, CollaboratorUnavailableError
from canary_deploy.resilience import (
    AsyncTimeoutManager,
    ResiliencePolicy,
    RetryConfig,
    RetryError,
    RetryManager,
    RetryStrategy,
    TimeoutConfig,
    TimeoutException,
)


def _fast_retry(**overrides):
    config = {"max_attempts": 3, "base_delay": 0.0, "jitter": False}
    config.update(overrides)
    return RetryConfig(**config)


class TestRetryManager:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        func = AsyncMock(side_effect=[ConnectionError("reset"), ConnectionError("reset"), "ok"])

        result = await RetryManager(_fast_retry()).execute_async(func)

        assert result == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_attempts(self):
        func = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(RetryError) as exc_info:
            await RetryManager(_fast_retry(max_attempts=2)).execute_async(func)

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, ConnectionError)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_unchanged(self):
        func = AsyncMock(side_effect=KeyError("missing"))
        manager = RetryManager(_fast_retry(non_retryable_exceptions=(KeyError,)))

        with pytest.raises(KeyError):
            await manager.execute_async(func)

        assert func.await_count == 1

    @pytest.mark.parametrize(
        "strategy,expected",
        [
            (RetryStrategy.EXPONENTIAL, [1.0, 2.0, 4.0, 5.0]),
            (RetryStrategy.LINEAR, [1.0, 2.0, 3.0, 4.0]),
            (RetryStrategy.CONSTANT, [1.0, 1.0, 1.0, 1.0]),
        ],
    )
    def test_backoff_delays(self, strategy, expected):
        manager = RetryManager(
            RetryConfig(base_delay=1.0, max_delay=5.0, strategy=strategy, jitter=False)
        )

        assert [manager.calculate_delay(attempt) for attempt in range(1, 5)] == expected


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_operation_times_out(self):
        manager = AsyncTimeoutManager(TimeoutConfig(name="metrics.collect", timeout_seconds=0.01))

        with pytest.raises(TimeoutException) as exc_info:
            await manager.execute(asyncio.sleep(1))

        assert exc_info.value.operation_name == "metrics.collect"
        assert manager.metrics.timeout_operations == 1


class TestResiliencePolicy:
    @pytest.mark.asyncio
    async def test_passes_arguments_through(self):
        func = AsyncMock(return_value="v1")
        policy = ResiliencePolicy(1.0, _fast_retry())

        assert await policy.call("store.get", func, "deployment:active:production") == "v1"
        func.assert_awaited_once_with("deployment:active:production")

    @pytest.mark.asyncio
    async def test_unavailable_after_retries(self):
        func = AsyncMock(side_effect=ConnectionError("refused"))
        policy = ResiliencePolicy(1.0, _fast_retry(max_attempts=2))

        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            await policy.call("store.set", func)

        assert not isinstance(exc_info.value, CollaboratorTimeoutError)
        assert exc_info.value.attempts == 2
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_on_final_attempt(self):
        async def hang():
            await asyncio.sleep(1)

        policy = ResiliencePolicy(0.01, _fast_retry(max_attempts=2))

        with pytest.raises(CollaboratorTimeoutError) as exc_info:
            await policy.call("metrics.collect", hang)

        assert exc_info.value.operation == "metrics.collect"

    @pytest.mark.asyncio
    async def test_no_retry_policy_makes_single_attempt(self):
        func = AsyncMock(side_effect=ConnectionError("refused"))

        with pytest.raises(CollaboratorUnavailableError):
            await ResiliencePolicy.no_retry(1.0).call("store.get", func)

        assert func.await_count == 1
