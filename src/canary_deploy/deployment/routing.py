"""Per-request canary routing decisions."""

import hashlib
import random

from .models import CanaryState


def routing_bucket(version: str, routing_key: str) -> int:
    """Stable bucket in [0, 100) for a caller."""
    digest = hashlib.sha256(f"{version}:{routing_key}".encode()).hexdigest()
    return int(digest, 16) % 100


def route_to_canary(
    state: CanaryState | None,
    version: str,
    routing_key: str | None = None,
    rng: random.Random | None = None,
) -> bool:
    """Decide whether one unit of traffic goes to the canary.

    Without a routing key every call is an independent draw in [0, 100).
    With one, the same caller gets the same answer for a given percentage.
    """
    if state is None or not state.is_active:
        return False

    if routing_key is not None:
        return routing_bucket(version, routing_key) < state.percentage

    draw = (rng or random).random() * 100
    return draw < state.percentage
