from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from typing import Callable, Union

import httpx

from appmonitor.core.config import ApplicationConfig, settings


@dataclass(frozen=True)
class Healthy:
    status_code: int

    @property
    def healthy(self) -> bool:
        return True


@dataclass(frozen=True)
class UnexpectedStatus:
    status_code: int
    expected_code: int

    @property
    def healthy(self) -> bool:
        return False


@dataclass(frozen=True)
class TransportFailure:
    error: str

    @property
    def healthy(self) -> bool:
        return False

    @property
    def status_code(self) -> int:
        return 0


CheckOutcome = Union[Healthy, UnexpectedStatus, TransportFailure]


class Checker:
    """Issues a single GET per target and classifies the response.

    The client is created lazily and shared across checks so connections are
    reused between rounds. Call ``aclose`` when the checker is no longer needed.
    """

    def __init__(
        self,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self._timeout = timeout_sec if timeout_sec is not None else settings.check_timeout_sec
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(
                follow_redirects=True,
                timeout=self._timeout,
                headers={"User-Agent": settings.user_agent},
            )
        )
        self._client: httpx.AsyncClient | None = None

    async def check(self, target: ApplicationConfig) -> CheckOutcome:
        client = self._get_client()
        try:
            # httpx timeouts apply per read; the deadline bounds the whole request.
            status_code = await asyncio.wait_for(self._fetch(client, target.url), self._timeout)
        except asyncio.TimeoutError:
            return TransportFailure(error="timeout")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return TransportFailure(error=_normalize_error(exc))

        if status_code == target.expected_code:
            return Healthy(status_code=status_code)
        return UnexpectedStatus(status_code=status_code, expected_code=target.expected_code)

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> int:
        async with client.stream("GET", url, timeout=self._timeout) as response:
            # Drain and drop the body so the connection can go back to the pool.
            async for _ in response.aiter_raw():
                pass
            return response.status_code

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client


def _normalize_error(exc: Exception) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"timeout: {exc}" if str(exc) else "timeout"
    if isinstance(exc, httpx.ConnectError):
        cause = exc.__cause__ or exc.__context__
        if isinstance(cause, socket.gaierror):
            return f"dns_error: {cause}"
        return f"connect_error: {exc}" if str(exc) else "connect_error"
    if isinstance(exc, httpx.TransportError):
        name = exc.__class__.__name__.lower()
        return f"{name}: {exc}" if str(exc) else name
    return str(exc) or exc.__class__.__name__
