"""Failover engine: decision table, status emission and the supervisor loop."""

from plex_failover.engine.decision import (
    Action,
    DecisionInputs,
    Notification,
    Op,
    PlannedStep,
    compose_status,
    plan_actions,
)
from plex_failover.engine.status import HEARTBEAT_TAG, EmissionKind, StatusEmitter
from plex_failover.engine.supervisor import ActionRecord, FailoverEngine, TickReport

__all__ = [
    "HEARTBEAT_TAG",
    "Action",
    "ActionRecord",
    "DecisionInputs",
    "EmissionKind",
    "FailoverEngine",
    "Notification",
    "Op",
    "PlannedStep",
    "StatusEmitter",
    "TickReport",
    "compose_status",
    "plan_actions",
]
