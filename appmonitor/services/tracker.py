"""Per-application failure/recovery state machine.

Each application moves between three states::

    HealthyState --fail--> DegradedState(1) --fail--> AlertedState(2) --fail--> AlertedState(3) ...
         ^                        |                         |
         +-------- ok ------------+------------ ok ---------+  (recovery notice)

An alert goes out exactly once per episode, on the failure that reaches the
threshold. A recovery notice goes out only when leaving ``AlertedState``.
Failures below the threshold followed by a healthy check reset silently.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union

from appmonitor.alerts.base import AlertEvent, NotificationEvent, RecoveryEvent
from appmonitor.core.config import ApplicationConfig
from appmonitor.services.checker import CheckOutcome, TransportFailure

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = 2


@dataclass(frozen=True)
class HealthyState:
    @property
    def failures(self) -> int:
        return 0

    @property
    def alert_sent(self) -> bool:
        return False


@dataclass(frozen=True)
class DegradedState:
    failures: int

    @property
    def alert_sent(self) -> bool:
        return False


@dataclass(frozen=True)
class AlertedState:
    # Keeps counting while the outage lasts; no further alerts are sent.
    failures: int

    @property
    def alert_sent(self) -> bool:
        return True


AlertState = Union[HealthyState, DegradedState, AlertedState]

HEALTHY = HealthyState()


class Action(str, Enum):
    NONE = "none"
    ALERT = "alert"
    RECOVER = "recover"


def advance(state: AlertState, outcome: CheckOutcome, threshold: int = ALERT_THRESHOLD) -> tuple[AlertState, Action]:
    """Compute the next state for one check outcome. Pure; performs no I/O."""
    if outcome.healthy:
        if isinstance(state, AlertedState):
            return HEALTHY, Action.RECOVER
        return HEALTHY, Action.NONE

    if isinstance(state, AlertedState):
        return AlertedState(state.failures + 1), Action.NONE

    failures = state.failures + 1
    if failures == threshold:
        return AlertedState(failures), Action.ALERT
    return DegradedState(failures), Action.NONE


class EventSink(Protocol):
    async def notify(self, event: NotificationEvent) -> object:  # pragma: no cover - interface
        ...


class StateTracker:
    """Owns the per-application alert state and triggers notifications.

    A single lock covers the state transition and the notification dispatch,
    so deliveries are serialized process-wide and counters never interleave.
    """

    def __init__(self, notifier: EventSink, threshold: int = ALERT_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError("alert threshold must be at least 1")
        self._notifier = notifier
        self._threshold = threshold
        self._states: dict[str, AlertState] = {}
        self._lock = asyncio.Lock()

    @property
    def threshold(self) -> int:
        return self._threshold

    async def observe(self, target: ApplicationConfig, outcome: CheckOutcome) -> NotificationEvent | None:
        """Feed one check outcome for ``target``; returns the event sent, if any."""
        async with self._lock:
            current = self._states.get(target.name)
            if current is None and outcome.healthy:
                return None

            previous = current or HEALTHY
            new_state, action = advance(previous, outcome, self._threshold)
            self._states[target.name] = new_state

            event = self._build_event(target, outcome, new_state, action)
            self._log_transition(target, previous, new_state, action)
            if event is not None:
                await self._notifier.notify(event)
            return event

    def state_of(self, name: str) -> AlertState:
        return self._states.get(name, HEALTHY)

    def snapshot(self) -> dict[str, AlertState]:
        return dict(self._states)

    def _build_event(
        self,
        target: ApplicationConfig,
        outcome: CheckOutcome,
        state: AlertState,
        action: Action,
    ) -> NotificationEvent | None:
        if action is Action.ALERT:
            return AlertEvent(
                application=target,
                status_code=outcome.status_code,
                failure_count=state.failures,
                error=outcome.error if isinstance(outcome, TransportFailure) else None,
            )
        if action is Action.RECOVER:
            return RecoveryEvent(application=target, status_code=outcome.status_code)
        return None

    def _log_transition(
        self,
        target: ApplicationConfig,
        previous: AlertState,
        new_state: AlertState,
        action: Action,
    ) -> None:
        if action is Action.ALERT:
            logger.info("%s reached %d consecutive failures, alerting", target.name, new_state.failures)
        elif action is Action.RECOVER:
            logger.info("%s recovered after %d failures", target.name, previous.failures)
        elif isinstance(new_state, HealthyState) and previous.failures:
            logger.info("%s recovered below alert threshold, counter reset", target.name)
        elif isinstance(new_state, DegradedState):
            logger.debug("%s degraded (%d/%d)", target.name, new_state.failures, self._threshold)
        elif isinstance(new_state, AlertedState):
            logger.debug("%s still down (%d failures), alert already sent", target.name, new_state.failures)
