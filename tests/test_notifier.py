"""Tests for multi-channel notification delivery."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from appmonitor.alerts.base import AlertEvent, NotificationDeliveryError
from appmonitor.alerts.email import EmailNotifier
from appmonitor.alerts.notifier import DeliveryReport, Notifier
from appmonitor.alerts.webhook import WebhookNotifier
from appmonitor.core.config import ApplicationConfig, MonitorConfig


def make_sender(name: str, enabled: bool = True, error: Exception | None = None) -> MagicMock:
    sender = MagicMock()
    sender.name = name
    sender.enabled = enabled
    sender.send = AsyncMock(side_effect=error)
    return sender


@pytest.fixture
def event(app_config: ApplicationConfig) -> AlertEvent:
    return AlertEvent(application=app_config, status_code=500, failure_count=2)


class TestNotifier:
    @pytest.mark.asyncio
    async def test_all_channels_attempted(self, event: AlertEvent) -> None:
        email, webhook = make_sender("email"), make_sender("webhook")

        report = await Notifier([email, webhook]).notify(event)

        email.send.assert_awaited_once_with(event)
        webhook.send.assert_awaited_once_with(event)
        assert report.results == {"email": True, "webhook": True}

    @pytest.mark.asyncio
    async def test_failure_does_not_block_other_channel(self, event: AlertEvent) -> None:
        email = make_sender("email", error=NotificationDeliveryError("email", "smtp down"))
        webhook = make_sender("webhook")

        report = await Notifier([email, webhook]).notify(event)

        webhook.send.assert_awaited_once_with(event)
        assert report.failed == ["email"]
        assert report.delivered == ["webhook"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, event: AlertEvent) -> None:
        email = make_sender("email", error=RuntimeError("boom"))

        report = await Notifier([email]).notify(event)

        assert report.results == {"email": False}

    @pytest.mark.asyncio
    async def test_disabled_channel_is_skipped(self, event: AlertEvent) -> None:
        email, webhook = make_sender("email"), make_sender("webhook", enabled=False)

        report = await Notifier([email, webhook]).notify(event)

        webhook.send.assert_not_awaited()
        assert report.results == {"email": True}

    @pytest.mark.asyncio
    async def test_no_channels(self, event: AlertEvent) -> None:
        report = await Notifier([]).notify(event)
        assert report == DeliveryReport()

    def test_from_config_builds_both_channels(self) -> None:
        config = MonitorConfig(check_interval="30s")

        notifier = Notifier.from_config(config)

        assert [type(s) for s in notifier._senders] == [EmailNotifier, WebhookNotifier]
