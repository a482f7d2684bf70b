"""Key scheme for deployment records."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DeploymentKeys:
    """Builds ``{prefix}:{category}:{version-or-environment}`` keys."""

    prefix: str = "deployment"

    def _key(self, category: str, identifier: str) -> str:
        if not identifier:
            raise ValueError(f"Empty identifier for {category} key")
        return f"{self.prefix}:{category}:{identifier}"

    def config(self, version: str) -> str:
        return self._key("config", version)

    def canary(self, version: str) -> str:
        return self._key("canary", version)

    def features(self, version: str) -> str:
        return self._key("features", version)

    def monitoring(self, version: str) -> str:
        return self._key("monitoring", version)

    def state(self, version: str) -> str:
        return self._key("state", version)

    def active(self, environment: str) -> str:
        return self._key("active", environment)

    def previous(self, environment: str) -> str:
        return self._key("previous", environment)
