"""Tests for the pure failover decision table.

Covers every (mode, health, primary, secondary) row, the notification each
step carries, and the status snapshot format.
"""

from __future__ import annotations

import pytest

from plex_failover.core import HealthVerdict, InstanceRole, Mode, RunState, Severity
from plex_failover.engine import Action, DecisionInputs, Op, compose_status, plan_actions
from plex_failover.engine.decision import (
    FORCED_PRIMARY,
    FORCED_SECONDARY,
    PRIMARY_RESTORED,
    SECONDARY_PROMOTED,
)

R = RunState.RUNNING
S = RunState.STOPPED


def _labels(inputs: DecisionInputs) -> list[str]:
    return [step.action.value for step in plan_actions(inputs)]


class TestAutoMode:
    """Tests for the auto rows of the decision table."""

    def test_healthy_secondary_running_restores(self) -> None:
        """Test a healthy primary stops the secondary with Primary Restored."""
        plan = plan_actions(DecisionInputs(Mode.AUTO, HealthVerdict.HEALTHY, R, R))
        assert [s.action for s in plan] == [Action.SECONDARY_STOPPED]
        assert plan[0].notification == PRIMARY_RESTORED

    def test_healthy_converged_is_empty(self) -> None:
        """Test a converged pair yields no steps."""
        assert plan_actions(DecisionInputs(Mode.AUTO, HealthVerdict.HEALTHY, R, S)) == ()

    def test_error_promotes_secondary(self) -> None:
        """Test error stops the primary before starting the secondary."""
        plan = plan_actions(DecisionInputs(Mode.AUTO, HealthVerdict.ERROR, R, S))
        assert [s.action for s in plan] == [Action.PRIMARY_STOPPED, Action.SECONDARY_STARTED]
        assert plan[0].notification is None
        assert plan[1].notification == SECONDARY_PROMOTED
        assert plan[1].notification.severity is Severity.WARNING

    def test_error_with_secondary_already_running(self) -> None:
        """Test only the primary stop is planned when the secondary already runs."""
        plan = plan_actions(DecisionInputs(Mode.AUTO, HealthVerdict.ERROR, R, R))
        assert [s.action for s in plan] == [Action.PRIMARY_STOPPED]
        assert plan[0].notification == SECONDARY_PROMOTED

    @pytest.mark.parametrize("secondary", [R, S])
    def test_stopped_primary_is_warmed_not_failed_over(self, secondary: RunState) -> None:
        """Test a down primary is warmed and never promotes."""
        plan = plan_actions(DecisionInputs(Mode.AUTO, HealthVerdict.STOPPED, S, secondary))
        assert [s.action for s in plan] == [Action.PRIMARY_WARMING]
        assert plan[0].notification is None


class TestForcePrimary:
    """Tests for force_primary rows."""

    @pytest.mark.parametrize(
        ("primary", "secondary", "expected"),
        [
            (S, S, ["primary-forced"]),
            (S, R, ["primary-forced", "secondary-stopped"]),
            (R, R, ["secondary-stopped"]),
            (R, S, []),
        ],
    )
    def test_table(self, primary: RunState, secondary: RunState, expected: list[str]) -> None:
        """Test steps for every run-state combination."""
        for health in HealthVerdict:
            assert _labels(DecisionInputs(Mode.FORCE_PRIMARY, health, primary, secondary)) == expected

    def test_forced_notification(self) -> None:
        """Test starting the primary carries Forced Primary."""
        plan = plan_actions(DecisionInputs(Mode.FORCE_PRIMARY, HealthVerdict.STOPPED, S, R))
        assert plan[0].notification == FORCED_PRIMARY
        assert plan[1].notification is None


class TestForceSecondary:
    """Tests for force_secondary rows."""

    @pytest.mark.parametrize(
        ("primary", "secondary", "expected"),
        [
            (S, S, ["secondary-forced"]),
            (R, S, ["secondary-forced", "primary-stopped"]),
            (R, R, ["primary-stopped"]),
            (S, R, []),
        ],
    )
    def test_table(self, primary: RunState, secondary: RunState, expected: list[str]) -> None:
        """Test steps for every run-state combination."""
        for health in HealthVerdict:
            assert (
                _labels(DecisionInputs(Mode.FORCE_SECONDARY, health, primary, secondary))
                == expected
            )

    def test_forced_notification(self) -> None:
        """Test starting the secondary carries Forced Secondary."""
        plan = plan_actions(DecisionInputs(Mode.FORCE_SECONDARY, HealthVerdict.HEALTHY, R, S))
        assert plan[0].notification == FORCED_SECONDARY
        assert plan[0].notification.severity is Severity.WARNING


class TestActions:
    """Tests for Action metadata."""

    @pytest.mark.parametrize(
        ("action", "role", "op", "assumed"),
        [
            (Action.PRIMARY_STOPPED, InstanceRole.PRIMARY, Op.STOP, S),
            (Action.SECONDARY_STARTED, InstanceRole.SECONDARY, Op.START, R),
            (Action.SECONDARY_STOPPED, InstanceRole.SECONDARY, Op.STOP, S),
            (Action.PRIMARY_WARMING, InstanceRole.PRIMARY, Op.START, None),
            (Action.PRIMARY_FORCED, InstanceRole.PRIMARY, Op.START, R),
            (Action.SECONDARY_FORCED, InstanceRole.SECONDARY, Op.START, R),
        ],
    )
    def test_targets(
        self, action: Action, role: InstanceRole, op: Op, assumed: RunState | None
    ) -> None:
        """Test each action's role, operation and assumed state."""
        assert action.role is role
        assert action.op is op
        assert action.assumed_state is assumed


class TestComposeStatus:
    """Tests for compose_status."""

    def test_without_actions(self) -> None:
        """Test the base snapshot format."""
        status = compose_status(Mode.AUTO, HealthVerdict.HEALTHY, R, S)
        assert status == "mode=auto; primary=healthy; p_proc=running; s_proc=stopped"

    def test_with_actions(self) -> None:
        """Test actions are appended in order."""
        status = compose_status(
            Mode.AUTO,
            HealthVerdict.ERROR,
            S,
            R,
            [Action.PRIMARY_STOPPED, Action.SECONDARY_STARTED],
        )
        assert status == (
            "mode=auto; primary=error; p_proc=stopped; s_proc=running; "
            "action=primary-stopped secondary-started"
        )
