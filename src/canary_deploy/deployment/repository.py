"""Typed access to deployment records in the config store."""

import builtins
import json
import logging
from typing import Any

from canary_deploy.errors import ConcurrentModificationError, StoreError
from canary_deploy.resilience import ResiliencePolicy
from canary_deploy.store import ConfigStore, DeploymentKeys

from .enums import DeploymentState
from .models import CanaryState, DeploymentConfig

logger = logging.getLogger(__name__)


class DeploymentRepository:
    """Reads and writes deployment records.

    Each write is a full-value overwrite of a single key. Canary state
    updates go through compare-and-set against the stored revision.
    """

    def __init__(
        self,
        store: ConfigStore,
        keys: DeploymentKeys | None = None,
        policy: ResiliencePolicy | None = None,
    ):
        self.store = store
        self.keys = keys or DeploymentKeys()
        self.policy = policy or ResiliencePolicy(timeout_seconds=5.0)

    async def _get(self, key: str) -> str | None:
        return await self.policy.call("store.get", self.store.get, key)

    async def _set(self, key: str, value: str) -> None:
        await self.policy.call("store.set", self.store.set, key, value)

    async def _delete(self, key: str) -> bool:
        return await self.policy.call("store.delete", self.store.delete, key)

    async def _get_json(self, key: str) -> Any:
        raw = await self._get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt JSON stored under {key}") from e

    # Deployment config

    async def save_config(self, config: DeploymentConfig) -> None:
        await self._set(self.keys.config(config.version), config.to_json())

    async def get_config(self, version: str) -> DeploymentConfig | None:
        data = await self._get_json(self.keys.config(version))
        return DeploymentConfig.from_dict(data) if data is not None else None

    # Canary state

    async def get_canary(self, version: str) -> CanaryState | None:
        data = await self._get_json(self.keys.canary(version))
        return CanaryState.from_dict(data) if data is not None else None

    async def create_canary(self, version: str, state: CanaryState) -> None:
        await self._set(self.keys.canary(version), state.to_json())

    async def update_canary(
        self, version: str, state: CanaryState, expected_revision: int
    ) -> CanaryState:
        """Write ``state`` if the stored revision still equals ``expected_revision``.

        Returns the stored state with its revision bumped.
        """
        key = self.keys.canary(version)
        current_raw = await self._get(key)
        current = CanaryState.from_json(current_raw) if current_raw is not None else None

        if current is None or current.revision != expected_revision:
            raise ConcurrentModificationError(
                version, expected_revision, current.revision if current else None
            )

        state.revision = expected_revision + 1
        swapped = await self.policy.call(
            "store.compare_and_set", self.store.compare_and_set, key, current_raw, state.to_json()
        )
        if not swapped:
            latest = await self.get_canary(version)
            raise ConcurrentModificationError(
                version, expected_revision, latest.revision if latest else None
            )
        return state

    async def delete_canary(self, version: str) -> bool:
        return await self._delete(self.keys.canary(version))

    # Monitoring flag

    async def set_monitoring(self, version: str, owner: str) -> None:
        await self._set(
            self.keys.monitoring(version), json.dumps({"active": True, "owner": owner})
        )

    async def get_monitoring(self, version: str) -> builtins.dict[str, Any] | None:
        return await self._get_json(self.keys.monitoring(version))

    async def clear_monitoring(self, version: str) -> bool:
        return await self._delete(self.keys.monitoring(version))

    # Lifecycle state

    async def get_state(self, version: str) -> DeploymentState | None:
        raw = await self._get(self.keys.state(version))
        return DeploymentState(raw) if raw is not None else None

    async def set_state(self, version: str, state: DeploymentState) -> None:
        await self._set(self.keys.state(version), state.value)

    # Environment pointers

    async def get_active_version(self, environment: str) -> str | None:
        return await self._get(self.keys.active(environment))

    async def set_active_version(self, environment: str, version: str) -> None:
        await self._set(self.keys.active(environment), version)

    async def get_previous_version(self, environment: str) -> str | None:
        return await self._get(self.keys.previous(environment))

    async def set_previous_version(self, environment: str, version: str) -> None:
        await self._set(self.keys.previous(environment), version)

    # Feature flags

    async def get_features(self, version: str) -> builtins.dict[str, bool] | None:
        return await self._get_json(self.keys.features(version))

    async def save_features(self, version: str, features: builtins.dict[str, bool]) -> None:
        await self._set(self.keys.features(version), json.dumps(features))
