"""Config store backends and key scheme."""

from canary_deploy.config import DeploymentSettings, StoreBackend

from .backends import ConfigStore, InMemoryConfigStore, RedisConfigStore
from .keys import DeploymentKeys


def create_config_store(settings: DeploymentSettings) -> ConfigStore:
    """Build the store selected by ``settings.store_backend``."""
    if settings.store_backend == StoreBackend.REDIS:
        return RedisConfigStore(url=settings.redis_url)
    return InMemoryConfigStore()


__all__ = [
    "ConfigStore",
    "DeploymentKeys",
    "InMemoryConfigStore",
    "RedisConfigStore",
    "create_config_store",
]
