"""Pure failover decision table.

Design constraints:
- Pure logic: no I/O, no logging, no metrics.
- Deterministic: same inputs -> same plan.
- Inputs are measured states; steps whose target is already satisfied are
  never planned, so a converged system yields an empty plan.
- The caller executes steps in order and owns notifications/logging.

Decision table (per tick):

    mode             condition                      steps
    auto             healthy, secondary running     secondary-stopped  (Primary Restored)
    auto             healthy, secondary stopped     -
    auto             error                          primary-stopped, secondary-started
                                                    (Secondary Promoted)
    auto             stopped                        primary-warming (no promotion)
    force_primary    primary not running            primary-forced (Forced Primary)
    force_primary    secondary running              secondary-stopped
    force_secondary  secondary not running          secondary-forced (Forced Secondary)
    force_secondary  primary running                primary-stopped

Unrecognized modes never reach this table: Mode.parse maps them to AUTO.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from plex_failover.core import HealthVerdict, InstanceRole, Mode, RunState, Severity


class Op(Enum):
    """Operation a step performs on its instance."""

    START = "start"
    STOP = "stop"


class Action(Enum):
    """Action labels recorded in the tick's action list.

    These values are stable and appear in status lines and metrics.
    """

    PRIMARY_STOPPED = "primary-stopped"
    SECONDARY_STARTED = "secondary-started"
    SECONDARY_STOPPED = "secondary-stopped"
    PRIMARY_WARMING = "primary-warming"
    PRIMARY_FORCED = "primary-forced"
    SECONDARY_FORCED = "secondary-forced"

    @property
    def role(self) -> InstanceRole:
        """Instance the action targets."""
        return _TARGETS[self][0]

    @property
    def op(self) -> Op:
        """Start or stop."""
        return _TARGETS[self][1]

    @property
    def assumed_state(self) -> RunState | None:
        """Run state to report after a successful action.

        None for warming: the primary may still be coming up.
        """
        if self is Action.PRIMARY_WARMING:
            return None
        return RunState.RUNNING if self.op is Op.START else RunState.STOPPED


_TARGETS: dict[Action, tuple[InstanceRole, Op]] = {
    Action.PRIMARY_STOPPED: (InstanceRole.PRIMARY, Op.STOP),
    Action.SECONDARY_STARTED: (InstanceRole.SECONDARY, Op.START),
    Action.SECONDARY_STOPPED: (InstanceRole.SECONDARY, Op.STOP),
    Action.PRIMARY_WARMING: (InstanceRole.PRIMARY, Op.START),
    Action.PRIMARY_FORCED: (InstanceRole.PRIMARY, Op.START),
    Action.SECONDARY_FORCED: (InstanceRole.SECONDARY, Op.START),
}


@dataclass(frozen=True)
class Notification:
    """Outward notification attached to a step."""

    subject: str
    description: str
    severity: Severity


PRIMARY_RESTORED = Notification(
    "Primary Restored", "Primary healthy; secondary stopped.", Severity.NORMAL
)
SECONDARY_PROMOTED = Notification(
    "Secondary Promoted",
    "Primary unhealthy: error detected in logs. Secondary started.",
    Severity.WARNING,
)
FORCED_PRIMARY = Notification(
    "Forced Primary", "Primary started by force_primary mode.", Severity.NORMAL
)
FORCED_SECONDARY = Notification(
    "Forced Secondary", "Secondary started by force_secondary mode.", Severity.WARNING
)


@dataclass(frozen=True)
class PlannedStep:
    """One ordered step of a tick's plan."""

    action: Action
    notification: Notification | None = None


@dataclass(frozen=True)
class DecisionInputs:
    """Measured snapshot the decision table evaluates."""

    mode: Mode
    health: HealthVerdict
    primary: RunState
    secondary: RunState


def plan_actions(inputs: DecisionInputs) -> tuple[PlannedStep, ...]:
    """Compute the ordered steps that converge the pair for this tick."""
    if inputs.mode is Mode.FORCE_PRIMARY:
        return _plan_force_primary(inputs)
    if inputs.mode is Mode.FORCE_SECONDARY:
        return _plan_force_secondary(inputs)
    return _plan_auto(inputs)


def _plan_auto(inputs: DecisionInputs) -> tuple[PlannedStep, ...]:
    secondary_up = inputs.secondary is RunState.RUNNING

    if inputs.health is HealthVerdict.HEALTHY:
        if secondary_up:
            return (PlannedStep(Action.SECONDARY_STOPPED, PRIMARY_RESTORED),)
        return ()

    if inputs.health is HealthVerdict.ERROR:
        # Stop before start; the start proceeds even if the stop fails.
        if secondary_up:
            return (PlannedStep(Action.PRIMARY_STOPPED, SECONDARY_PROMOTED),)
        return (
            PlannedStep(Action.PRIMARY_STOPPED),
            PlannedStep(Action.SECONDARY_STARTED, SECONDARY_PROMOTED),
        )

    # STOPPED: warm the primary, never promote on a down primary.
    return (PlannedStep(Action.PRIMARY_WARMING),)


def _plan_force_primary(inputs: DecisionInputs) -> tuple[PlannedStep, ...]:
    steps: list[PlannedStep] = []
    if inputs.primary is not RunState.RUNNING:
        steps.append(PlannedStep(Action.PRIMARY_FORCED, FORCED_PRIMARY))
    if inputs.secondary is RunState.RUNNING:
        steps.append(PlannedStep(Action.SECONDARY_STOPPED))
    return tuple(steps)


def _plan_force_secondary(inputs: DecisionInputs) -> tuple[PlannedStep, ...]:
    steps: list[PlannedStep] = []
    if inputs.secondary is not RunState.RUNNING:
        steps.append(PlannedStep(Action.SECONDARY_FORCED, FORCED_SECONDARY))
    if inputs.primary is RunState.RUNNING:
        steps.append(PlannedStep(Action.PRIMARY_STOPPED))
    return tuple(steps)


def compose_status(
    mode: Mode,
    health: HealthVerdict,
    primary: RunState,
    secondary: RunState,
    actions: list[Action] | tuple[Action, ...] = (),
) -> str:
    """Build the one-line status snapshot used for change detection."""
    status = (
        f"mode={mode.value}; primary={health.value}; "
        f"p_proc={primary.value}; s_proc={secondary.value}"
    )
    if actions:
        status += "; action=" + " ".join(a.value for a in actions)
    return status
