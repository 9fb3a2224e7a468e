"""Primary health evaluation (process presence + log failure signatures)."""

from plex_failover.health.evaluator import PS_VARIANTS, HealthEvaluator

__all__ = ["PS_VARIANTS", "HealthEvaluator"]
