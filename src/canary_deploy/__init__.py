"""
Canary deployment controller.

Security-gated deployments with progressive canary rollout, automated
health-based rollback and per-request canary routing.
"""

__version__ = "0.1.0"
