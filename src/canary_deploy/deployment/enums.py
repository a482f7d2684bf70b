"""
Deployment Enums

Lifecycle states of a deployment and the status of its canary rollout.
"""

from enum import Enum


class DeploymentState(Enum):
    """Deployment lifecycle states."""

    PENDING = "pending"
    CANARY_ACTIVE = "canary_active"
    ROLLING_BACK = "rolling_back"
    FULL = "full"
    ROLLED_BACK = "rolled_back"


class CanaryStatus(Enum):
    """Canary rollout status."""

    ACTIVE = "active"
    STOPPED = "stopped"
