"""Tests for config store backends."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from canary_deploy.config import DeploymentSettings, StoreBackend
from canary_deploy.errors import StoreError
from canary_deploy.store import InMemoryConfigStore, RedisConfigStore, create_config_store


@pytest.fixture
def redis_client():
    """Mock ``redis.asyncio`` client with a transactional pipeline."""
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.aclose = AsyncMock()

    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.__aexit__.return_value = False
    pipe.watch = AsyncMock()
    pipe.unwatch = AsyncMock()
    pipe.get = AsyncMock(return_value=None)
    pipe.execute = AsyncMock(return_value=[True])
    client.pipeline.return_value = pipe
    client.pipe = pipe
    return client


class TestInMemoryConfigStore:
    @pytest.mark.asyncio
    async def test_basic_operations(self):
        store = InMemoryConfigStore()

        await store.set("deployment:active:production", "v1")

        assert await store.get("deployment:active:production") == "v1"
        assert await store.delete("deployment:active:production")
        assert not await store.delete("deployment:active:production")
        assert await store.get("deployment:active:production") is None

    @pytest.mark.asyncio
    async def test_compare_and_set(self):
        store = InMemoryConfigStore({"key": "old"})

        assert not await store.compare_and_set("key", "stale", "new")
        assert await store.compare_and_set("key", "old", "new")
        assert await store.compare_and_set("absent", None, "created")
        assert store.data == {"key": "new", "absent": "created"}


class TestRedisConfigStore:
    def test_requires_url_or_client(self):
        with pytest.raises(ValueError):
            RedisConfigStore()

    @pytest.mark.asyncio
    async def test_get_set_delete(self, redis_client):
        redis_client.get.return_value = "v1"
        store = RedisConfigStore(client=redis_client)

        await store.set("deployment:active:production", "v1")
        value = await store.get("deployment:active:production")
        deleted = await store.delete("deployment:active:production")

        redis_client.set.assert_awaited_once_with("deployment:active:production", "v1")
        assert value == "v1"
        assert deleted is True

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_errors(self, redis_client):
        redis_client.get.side_effect = RedisConnectionError("connection refused")
        store = RedisConfigStore(client=redis_client)

        with pytest.raises(StoreError, match="Redis get failed"):
            await store.get("deployment:config:v2")

    @pytest.mark.asyncio
    async def test_compare_and_set_writes_when_value_matches(self, redis_client):
        redis_client.pipe.get.return_value = "old"
        store = RedisConfigStore(client=redis_client)

        assert await store.compare_and_set("key", "old", "new")

        redis_client.pipeline.assert_called_once_with(transaction=True)
        redis_client.pipe.watch.assert_awaited_once_with("key")
        redis_client.pipe.multi.assert_called_once()
        redis_client.pipe.set.assert_called_once_with("key", "new")
        redis_client.pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_compare_and_set_rejects_stale_value(self, redis_client):
        redis_client.pipe.get.return_value = "changed"
        store = RedisConfigStore(client=redis_client)

        assert not await store.compare_and_set("key", "old", "new")

        redis_client.pipe.unwatch.assert_awaited_once()
        redis_client.pipe.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_compare_and_set_loses_race(self, redis_client):
        redis_client.pipe.get.return_value = "old"
        redis_client.pipe.execute.side_effect = WatchError("key changed")
        store = RedisConfigStore(client=redis_client)

        assert not await store.compare_and_set("key", "old", "new")

    @pytest.mark.asyncio
    async def test_close(self, redis_client):
        store = RedisConfigStore(client=redis_client)

        await store.close()

        redis_client.aclose.assert_awaited_once()
        assert store.redis is None


class TestCreateConfigStore:
    def test_memory_backend(self):
        settings = DeploymentSettings(_env_file=None, store_backend=StoreBackend.MEMORY)

        assert isinstance(create_config_store(settings), InMemoryConfigStore)

    def test_redis_backend(self):
        settings = DeploymentSettings(
            _env_file=None, store_backend="redis", redis_url="redis://cache:6379/2"
        )

        store = create_config_store(settings)

        assert isinstance(store, RedisConfigStore)
        assert store.url == "redis://cache:6379/2"
