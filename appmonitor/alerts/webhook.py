from __future__ import annotations

import asyncio
import hashlib
import hmac
from typing import Callable

import httpx
from pydantic import BaseModel

from appmonitor.alerts.base import AlertEvent, NotificationDeliveryError, NotificationEvent
from appmonitor.core.config import WebhookConfig, settings

SIGNATURE_HEADER = "X-AppMonitor-Signature"


class WebhookPayload(BaseModel):
    event: str
    application: str
    url: str
    timestamp: int
    status_code: int
    expected_code: int
    error: str | None = None
    failure_count: int

    @classmethod
    def from_event(cls, event: NotificationEvent) -> "WebhookPayload":
        app = event.application
        return cls(
            event=event.event_name,
            application=app.name,
            url=app.url,
            timestamp=int(event.occurred_at.timestamp()),
            status_code=event.status_code,
            expected_code=app.expected_code,
            error=event.error if isinstance(event, AlertEvent) else None,
            failure_count=event.failure_count,
        )

    def to_body(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode()


def sign_payload(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode(), msg=body, digestmod=hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, secret: str, signature: str) -> bool:
    return hmac.compare_digest(sign_payload(body, secret), signature)


class WebhookNotifier:
    name = "webhook"

    def __init__(
        self,
        config: WebhookConfig,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self._config = config
        self._timeout = timeout_sec if timeout_sec is not None else settings.webhook_timeout_sec
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout))

    @property
    def enabled(self) -> bool:
        return self._config.active

    def build_request(self, event: NotificationEvent) -> tuple[bytes, dict[str, str]]:
        body = WebhookPayload.from_event(event).to_body()
        headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.user_agent,
        }
        if self._config.secret is not None and self._config.secret.get_secret_value():
            headers[SIGNATURE_HEADER] = sign_payload(body, self._config.secret.get_secret_value())
        return body, headers

    async def send(self, event: NotificationEvent) -> None:
        if not self.enabled:
            return

        body, headers = self.build_request(event)
        try:
            async with self._client_factory() as client:
                resp = await asyncio.wait_for(
                    client.post(self._config.url, content=body, headers=headers), self._timeout
                )
        except asyncio.TimeoutError as exc:
            raise NotificationDeliveryError(
                self.name, f"webhook request timed out after {self._timeout:g}s"
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NotificationDeliveryError(self.name, f"failed to send webhook: {exc}") from exc

        if not resp.is_success:
            raise NotificationDeliveryError(
                self.name, f"webhook request failed with status {resp.status_code}"
            )
