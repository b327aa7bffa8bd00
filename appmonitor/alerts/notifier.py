from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Sequence

from appmonitor.alerts.base import AlertSender, NotificationDeliveryError, NotificationEvent
from appmonitor.alerts.email import EmailNotifier
from appmonitor.alerts.webhook import WebhookNotifier
from appmonitor.core.config import MonitorConfig

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    """Per-channel outcome of one notification. Skipped channels are absent."""

    results: dict[str, bool] = field(default_factory=dict)

    @property
    def delivered(self) -> list[str]:
        return [name for name, ok in self.results.items() if ok]

    @property
    def failed(self) -> list[str]:
        return [name for name, ok in self.results.items() if not ok]


class Notifier:
    """Sends every event through all enabled channels, independently of each other.

    Delivery is fire-and-forget: a failing channel is logged and reported but
    never retried, and it never prevents the remaining channels from running.
    """

    def __init__(self, senders: Sequence[AlertSender]) -> None:
        self._senders = list(senders)

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "Notifier":
        return cls([EmailNotifier(config.email), WebhookNotifier(config.webhook)])

    async def notify(self, event: NotificationEvent) -> DeliveryReport:
        active = []
        for sender in self._senders:
            if sender.enabled:
                active.append(sender)
            else:
                logger.debug("%s channel disabled, skipping %s", sender.name, event.event_name)

        results = await asyncio.gather(*(self._send(sender, event) for sender in active))
        return DeliveryReport(results=dict(results))

    async def _send(self, sender: AlertSender, event: NotificationEvent) -> tuple[str, bool]:
        app_name = event.application.name
        try:
            await sender.send(event)
        except NotificationDeliveryError as exc:
            logger.error("Failed to send %s %s for %s: %s", sender.name, event.event_name, app_name, exc)
            return sender.name, False
        except Exception:
            logger.exception("Unexpected error in %s channel for %s", sender.name, app_name)
            return sender.name, False

        logger.info("%s %s sent for %s", sender.name.capitalize(), event.event_name, app_name)
        return sender.name, True
