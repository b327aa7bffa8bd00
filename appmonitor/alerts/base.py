from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, Union

from appmonitor.core.config import ApplicationConfig


class NotificationDeliveryError(Exception):
    """A single channel failed to deliver a notification."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel


@dataclass(frozen=True)
class AlertEvent:
    application: ApplicationConfig
    status_code: int
    failure_count: int
    error: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_name(self) -> str:
        return "application_down"


@dataclass(frozen=True)
class RecoveryEvent:
    application: ApplicationConfig
    status_code: int
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_name(self) -> str:
        return "application_recovery"

    @property
    def failure_count(self) -> int:
        return 0


NotificationEvent = Union[AlertEvent, RecoveryEvent]


class AlertSender(Protocol):
    name: str

    @property
    def enabled(self) -> bool:  # pragma: no cover - interface
        ...

    async def send(self, event: NotificationEvent) -> None:  # pragma: no cover - interface
        ...
