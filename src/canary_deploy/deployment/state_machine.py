"""Deployment lifecycle transitions."""

from canary_deploy.errors import InvalidStateTransitionError

from .enums import DeploymentState

ALLOWED_TRANSITIONS: dict[DeploymentState, frozenset[DeploymentState]] = {
    DeploymentState.PENDING: frozenset(
        {DeploymentState.CANARY_ACTIVE, DeploymentState.FULL, DeploymentState.ROLLING_BACK}
    ),
    DeploymentState.CANARY_ACTIVE: frozenset(
        {DeploymentState.ROLLING_BACK, DeploymentState.FULL}
    ),
    DeploymentState.FULL: frozenset({DeploymentState.ROLLING_BACK}),
    # A rollback interrupted midway can be resumed
    DeploymentState.ROLLING_BACK: frozenset(
        {DeploymentState.ROLLED_BACK, DeploymentState.ROLLING_BACK}
    ),
    # Repeated rollback restores the same previous version again
    DeploymentState.ROLLED_BACK: frozenset({DeploymentState.ROLLING_BACK}),
}


def can_transition(current: DeploymentState, target: DeploymentState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def next_state(version: str, current: DeploymentState, target: DeploymentState) -> DeploymentState:
    """Validate a transition and return the new state."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(version, current.value, target.value)
    return target
