from __future__ import annotations

import asyncio
import smtplib
from email.mime.text import MIMEText
from typing import Callable

from appmonitor.alerts.base import AlertEvent, NotificationDeliveryError, NotificationEvent
from appmonitor.core.config import EmailConfig, settings

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_ALERT_ERROR_TEMPLATE = """
Service Alert - {name}

Application: {name}
URL: {url}
Status: Connection Failed
Error: {error}
Time: {time}
Failed Attempts: {failures}

Please investigate immediately.
"""

_ALERT_STATUS_TEMPLATE = """
Service Alert - {name}

Application: {name}
URL: {url}
Expected Status: {expected}
Actual Status: {actual}
Time: {time}
Failed Attempts: {failures}

Please investigate immediately.
"""

_RECOVERY_TEMPLATE = """
Service Recovery - {name}

Application: {name}
URL: {url}
Status: OK
Time: {time}

Service has recovered and is responding normally.
"""


def render_email(event: NotificationEvent) -> tuple[str, str]:
    """Return ``(subject, body)`` for an alert or recovery event."""
    app = event.application
    when = event.occurred_at.astimezone().strftime(TIME_FORMAT)

    if isinstance(event, AlertEvent):
        subject = f"ALERT: {app.name} is DOWN"
        if event.error is not None:
            body = _ALERT_ERROR_TEMPLATE.format(
                name=app.name,
                url=app.url,
                error=event.error,
                time=when,
                failures=event.failure_count,
            )
        else:
            body = _ALERT_STATUS_TEMPLATE.format(
                name=app.name,
                url=app.url,
                expected=app.expected_code,
                actual=event.status_code,
                time=when,
                failures=event.failure_count,
            )
        return subject, body

    subject = f"RECOVERY: {app.name} is back online"
    return subject, _RECOVERY_TEMPLATE.format(name=app.name, url=app.url, time=when)


class EmailNotifier:
    name = "email"

    def __init__(
        self,
        config: EmailConfig,
        smtp_factory: Callable[..., smtplib.SMTP] | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self._config = config
        self._smtp_factory = smtp_factory or smtplib.SMTP
        self._timeout = timeout_sec if timeout_sec is not None else settings.smtp_timeout_sec

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def build_message(self, event: NotificationEvent) -> MIMEText:
        subject, body = render_email(event)
        msg = MIMEText(body, "plain")
        msg["From"] = self._config.from_email
        msg["To"] = self._config.to_email
        msg["Subject"] = subject
        return msg

    async def send(self, event: NotificationEvent) -> None:
        msg = self.build_message(event)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationDeliveryError(self.name, str(exc) or exc.__class__.__name__) from exc

    def _deliver(self, msg: MIMEText) -> None:
        cfg = self._config
        with self._smtp_factory(cfg.smtp_host, cfg.smtp_port, timeout=self._timeout) as smtp:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
            if cfg.username:
                smtp.login(cfg.username, cfg.password.get_secret_value())
            smtp.sendmail(cfg.from_email, [cfg.to_email], msg.as_string())
