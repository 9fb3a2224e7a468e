"""Failover engine: the supervisor's poll-evaluate-act-emit loop.

Each tick:
1. Read the mode (re-read every tick, so changes apply within one interval)
2. Probe primary health and both run states
3. Plan steps with the pure decision table
4. Execute steps in order through the idempotent controller
5. Notify (throttled) for steps that changed state
6. Offer the status snapshot to the change/heartbeat emitter

Ticks never overlap.  run() waits on a threading.Event between ticks, so a
signal handler setting the event ends the loop after the in-flight tick.
Unexpected exceptions are logged and the loop continues (next tick
re-converges; every action is idempotent).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from plex_failover.core import (
    ControlResult,
    HealthVerdict,
    Instance,
    InstanceRole,
    Mode,
    RunState,
)
from plex_failover.engine.decision import (
    Action,
    DecisionInputs,
    Notification,
    Op,
    compose_status,
    plan_actions,
)
from plex_failover.engine.status import EmissionKind, StatusEmitter
from plex_failover.health.evaluator import HealthEvaluator
from plex_failover.notify.notifier import (
    CommandNotifier,
    LogNotifier,
    NotificationError,
    Notifier,
)
from plex_failover.notify.throttle import NotificationThrottle
from plex_failover.observability.metrics import (
    NOTIFY_FAILED,
    NOTIFY_SENT,
    NOTIFY_THROTTLED,
    FailoverMetrics,
    get_failover_metrics,
)
from plex_failover.runtime.controller import InstanceController
from plex_failover.runtime.docker_cli import DockerCliRuntime
from plex_failover.state.mode import ModeStore
from plex_failover.state.store import build_state_store

if TYPE_CHECKING:
    from plex_failover.config import SupervisorConfig
    from plex_failover.runtime.base import InstanceRuntime
    from plex_failover.state.store import StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionRecord:
    """An executed step (no-ops are never recorded)."""

    action: Action
    result: ControlResult


@dataclass(frozen=True)
class TickReport:
    """Everything one tick observed and did.

    Attributes:
        mode: Effective mode (unrecognized values already coerced to AUTO)
        health: Primary verdict measured at the start of the tick
        primary: Primary run state after the tick's actions
        secondary: Secondary run state after the tick's actions
        actions: Executed steps, in order
        status: Composed status snapshot
        emission: Emission kind, None if the status was not emitted
        notifications: Subjects of notifications delivered this tick
    """

    mode: Mode
    health: HealthVerdict
    primary: RunState
    secondary: RunState
    actions: tuple[ActionRecord, ...] = ()
    status: str = ""
    emission: EmissionKind | None = None
    notifications: tuple[str, ...] = field(default_factory=tuple)

    @property
    def action_labels(self) -> list[str]:
        """Action labels in execution order."""
        return [r.action.value for r in self.actions]


class FailoverEngine:
    """Keeps exactly one of two Plex instances serving.

    Usage:
        engine = FailoverEngine.from_config(SupervisorConfig())
        stop = threading.Event()
        engine.run(stop)  # until stop.set()

    All collaborators are injected; from_config() wires the production ones.
    """

    def __init__(
        self,
        *,
        primary: Instance,
        secondary: Instance,
        controller: InstanceController,
        evaluator: HealthEvaluator,
        mode_store: ModeStore,
        throttle: NotificationThrottle,
        notifier: Notifier,
        emitter: StatusEmitter,
        poll_interval_s: float = 15.0,
        metrics: FailoverMetrics | None = None,
    ) -> None:
        self._instances = {InstanceRole.PRIMARY: primary, InstanceRole.SECONDARY: secondary}
        self._controller = controller
        self._evaluator = evaluator
        self._mode_store = mode_store
        self._throttle = throttle
        self._notifier = notifier
        self._emitter = emitter
        self._poll_interval_s = poll_interval_s
        self._metrics = metrics if metrics is not None else get_failover_metrics()

    @classmethod
    def from_config(
        cls,
        config: SupervisorConfig,
        *,
        runtime: InstanceRuntime | None = None,
        store: StateStore | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> FailoverEngine:
        """Wire an engine from configuration.

        Raises:
            StateStoreError: If the state store cannot be initialized.
        """
        runtime = runtime or DockerCliRuntime(timeout_s=config.exec_timeout_s)
        store = store or build_state_store(config)
        store.ensure()
        mode_store = ModeStore(store)
        mode_store.ensure_default()

        if notifier is None:
            notifier = (
                CommandNotifier(config.notify_command) if config.notify_enabled else LogNotifier()
            )
        evaluator = HealthEvaluator(
            runtime,
            process_pattern=config.process_pattern,
            log_paths=config.log_paths,
            error_patterns=config.error_patterns,
            tail_lines=config.log_tail_lines,
        )
        controller = InstanceController(
            runtime,
            evaluator,
            service_script=config.service_script,
            settle_delay_s=config.settle_delay_s,
            sleep=sleep,
        )
        return cls(
            primary=Instance(InstanceRole.PRIMARY, config.primary_container),
            secondary=Instance(InstanceRole.SECONDARY, config.secondary_container),
            controller=controller,
            evaluator=evaluator,
            mode_store=mode_store,
            throttle=NotificationThrottle(store, config.throttle_window_s, clock=clock),
            notifier=notifier,
            emitter=StatusEmitter(config.heartbeat_s, clock=clock),
            poll_interval_s=config.poll_interval_s,
        )

    @property
    def primary(self) -> Instance:
        """Primary instance."""
        return self._instances[InstanceRole.PRIMARY]

    @property
    def secondary(self) -> Instance:
        """Secondary instance."""
        return self._instances[InstanceRole.SECONDARY]

    @property
    def metrics(self) -> FailoverMetrics:
        """Metrics collector this engine reports to."""
        return self._metrics

    def tick(self) -> TickReport:
        """Run one poll-evaluate-act-emit iteration."""
        mode = self._mode_store.get()
        p_state = self._evaluator.run_state(self.primary)
        health = self._evaluator.verdict(self.primary, p_state)
        s_state = self._evaluator.run_state(self.secondary)
        states = {InstanceRole.PRIMARY: p_state, InstanceRole.SECONDARY: s_state}

        plan = plan_actions(
            DecisionInputs(mode=mode, health=health, primary=p_state, secondary=s_state)
        )

        records: list[ActionRecord] = []
        delivered: list[str] = []
        for step in plan:
            action = step.action
            instance = self._instances[action.role]
            if action.op is Op.START:
                result = self._controller.start(instance)
            else:
                result = self._controller.stop(instance)

            if result is ControlResult.NOOP:
                logger.debug("Action %s was a no-op", action.value)
                continue

            records.append(ActionRecord(action, result))
            self._metrics.record_action(action.value, result.value)
            if result is ControlResult.FAILED:
                logger.warning(
                    "Action %s failed; will retry next tick",
                    action.value,
                    extra={"instance": instance.name},
                )
                continue

            if action.assumed_state is not None:
                states[action.role] = action.assumed_state
            if step.notification is not None and self._notify(step.notification):
                delivered.append(step.notification.subject)

        status = compose_status(
            mode,
            health,
            states[InstanceRole.PRIMARY],
            states[InstanceRole.SECONDARY],
            [r.action for r in records],
        )
        emission = self._emitter.offer(status)
        if emission is not None:
            self._metrics.record_emission(emission.value)
        self._metrics.record_tick(
            mode=mode,
            health=health,
            run_states={role.value: state for role, state in states.items()},
            status=status,
        )

        return TickReport(
            mode=mode,
            health=health,
            primary=states[InstanceRole.PRIMARY],
            secondary=states[InstanceRole.SECONDARY],
            actions=tuple(records),
            status=status,
            emission=emission,
            notifications=tuple(delivered),
        )

    def _notify(self, notification: Notification) -> bool:
        """Send a notification if the throttle allows. Never raises."""
        if not self._throttle.can_notify():
            logger.debug(
                "Notification throttled: %s",
                notification.subject,
                extra={"remaining_s": self._throttle.remaining_s()},
            )
            self._metrics.record_notification(NOTIFY_THROTTLED)
            return False

        try:
            self._notifier.send(
                notification.subject, notification.description, notification.severity
            )
        except NotificationError as e:
            logger.warning("Notification %r not delivered: %s", notification.subject, e)
            self._metrics.record_notification(NOTIFY_FAILED)
            self._throttle.mark_notified()
            return False

        self._throttle.mark_notified()
        self._metrics.record_notification(NOTIFY_SENT)
        return True

    def run(self, stop_event: threading.Event | None = None, *, max_ticks: int = 0) -> int:
        """Tick until *stop_event* is set (or *max_ticks* ticks, if > 0).

        Returns:
            Number of ticks attempted.
        """
        stop = stop_event or threading.Event()
        logger.info(
            "Supervisor starting",
            extra={
                "primary": self.primary.name,
                "secondary": self.secondary.name,
                "poll_interval_s": self._poll_interval_s,
                "heartbeat_s": self._emitter.heartbeat_s,
            },
        )

        ticks = 0
        while not stop.is_set():
            started = time.monotonic()
            try:
                self.tick()
            except Exception:
                logger.exception("Error in supervisor tick")
                self._metrics.record_tick_error()
            ticks += 1
            logger.debug("Tick finished", extra={"duration_s": time.monotonic() - started})
            if max_ticks and ticks >= max_ticks:
                break
            # Interruptible wait
            stop.wait(timeout=self._poll_interval_s)

        logger.info("Supervisor exiting", extra={"ticks": ticks})
        return ticks
