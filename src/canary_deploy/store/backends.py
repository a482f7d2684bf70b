"""
Config store backends.

The controller only needs string get/set/delete plus an atomic
compare-and-set for version-stamped canary updates. Redis is the production
backend; the in-memory store serves single-process use and tests.
"""

import asyncio
import builtins
import logging
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from canary_deploy.errors import StoreError

logger = logging.getLogger(__name__)


class ConfigStore(ABC):
    """Abstract key-value store interface."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Overwrite the value stored under key."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""

    @abstractmethod
    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        """Set key to value only if its current value equals expected.

        ``expected=None`` means the key must be absent.
        """

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryConfigStore(ConfigStore):
    """Dict-backed store.

    Every operation completes without awaiting, so each call is atomic with
    respect to other coroutines on the same event loop.
    """

    def __init__(self, initial: builtins.dict[str, str] | None = None):
        self.data: builtins.dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        if self.data.get(key) != expected:
            return False
        self.data[key] = value
        return True

    def keys(self, prefix: str = "") -> builtins.list[str]:
        return sorted(key for key in self.data if key.startswith(prefix))


class RedisConfigStore(ConfigStore):
    """Redis-backed store using ``redis.asyncio``."""

    def __init__(self, url: str | None = None, client: Any | None = None, **client_kwargs: Any):
        if client is None and url is None:
            raise ValueError("Either url or client is required")
        self.url = url
        self._client_kwargs = client_kwargs
        self.redis: Any | None = client
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> Any:
        """Create the client on first use."""
        async with self._connect_lock:
            if self.redis is None:
                self.redis = redis.from_url(
                    self.url, decode_responses=True, **self._client_kwargs
                )
                logger.info("Connected config store to Redis", extra={"redis_url": self.url})
        return self.redis

    async def _client(self) -> Any:
        return self.redis if self.redis is not None else await self.connect()

    async def get(self, key: str) -> str | None:
        client = await self._client()
        try:
            value = await client.get(key)
        except RedisError as e:
            raise StoreError(f"Redis get failed for {key}: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        client = await self._client()
        try:
            await client.set(key, value)
        except RedisError as e:
            raise StoreError(f"Redis set failed for {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        client = await self._client()
        try:
            return bool(await client.delete(key))
        except RedisError as e:
            raise StoreError(f"Redis delete failed for {key}: {e}") from e

    async def compare_and_set(self, key: str, expected: str | None, value: str) -> bool:
        client = await self._client()
        try:
            async with client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = await pipe.get(key)
                if isinstance(current, bytes):
                    current = current.decode("utf-8")
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value)
                await pipe.execute()
                return True
        except WatchError:
            return False
        except RedisError as e:
            raise StoreError(f"Redis compare-and-set failed for {key}: {e}") from e

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
