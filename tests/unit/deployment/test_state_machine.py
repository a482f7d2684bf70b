"""Tests for deployment lifecycle transitions."""

import pytest

from canary_deploy.deployment import DeploymentState, can_transition, next_state
from canary_deploy.errors import InvalidStateTransitionError


@pytest.mark.parametrize(
    "current,target",
    [
        (DeploymentState.PENDING, DeploymentState.CANARY_ACTIVE),
        (DeploymentState.PENDING, DeploymentState.FULL),
        (DeploymentState.CANARY_ACTIVE, DeploymentState.FULL),
        (DeploymentState.CANARY_ACTIVE, DeploymentState.ROLLING_BACK),
        (DeploymentState.FULL, DeploymentState.ROLLING_BACK),
        (DeploymentState.ROLLING_BACK, DeploymentState.ROLLED_BACK),
        (DeploymentState.ROLLED_BACK, DeploymentState.ROLLING_BACK),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    assert next_state("v2", current, target) is target


@pytest.mark.parametrize(
    "current,target",
    [
        (DeploymentState.FULL, DeploymentState.CANARY_ACTIVE),
        (DeploymentState.ROLLED_BACK, DeploymentState.FULL),
        (DeploymentState.CANARY_ACTIVE, DeploymentState.PENDING),
        (DeploymentState.PENDING, DeploymentState.ROLLED_BACK),
    ],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        next_state("v2", current, target)

    assert exc_info.value.current == current.value
    assert exc_info.value.target == target.value
