"""Deployment controller exception hierarchy."""


class DeploymentError(Exception):
    """Base deployment error."""


class DeploymentBlockedError(DeploymentError):
    """Security scan vetoed the deployment."""

    def __init__(self, reason: str):
        super().__init__(f"Deployment blocked: {reason}")
        self.reason = reason


class DeploymentConfigNotFoundError(DeploymentError):
    """No stored configuration exists for the requested version."""

    def __init__(self, version: str):
        super().__init__("Deployment config not found")
        self.version = version


class PreviousVersionNotFoundError(DeploymentError):
    """The environment has no known-good version to roll back to."""

    def __init__(self, environment: str):
        super().__init__("No previous version found for rollback")
        self.environment = environment


class InvalidDeploymentConfigError(DeploymentError):
    """Deployment configuration payload is malformed."""


class InvalidStateTransitionError(DeploymentError):
    """Requested lifecycle transition is not allowed."""

    def __init__(self, version: str, current: object, target: object):
        super().__init__(f"Invalid transition for {version}: {current} -> {target}")
        self.version = version
        self.current = current
        self.target = target


class ConcurrentModificationError(DeploymentError):
    """Canary state changed between read and write."""

    def __init__(self, version: str, expected_revision: int, actual_revision: int | None):
        super().__init__(
            f"Canary state for {version} was modified concurrently "
            f"(expected revision {expected_revision}, found {actual_revision})"
        )
        self.version = version
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision


class StoreError(DeploymentError):
    """Config store backend failure."""


class CollaboratorUnavailableError(DeploymentError):
    """A collaborator call kept failing after all retry attempts."""

    def __init__(self, operation: str, attempts: int, last_exception: Exception | None):
        super().__init__(f"{operation} failed after {attempts} attempts: {last_exception}")
        self.operation = operation
        self.attempts = attempts
        self.last_exception = last_exception


class CollaboratorTimeoutError(CollaboratorUnavailableError):
    """A collaborator call timed out on its final attempt."""
