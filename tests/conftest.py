from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from appmonitor.core.config import ApplicationConfig


@pytest.fixture
def app_config() -> ApplicationConfig:
    return ApplicationConfig(name="api", url="http://api.internal/health", enabled=True, expected_code=200)


@pytest.fixture
def raw_config() -> dict[str, Any]:
    return {
        "check_interval": "30s",
        "applications": [
            {"name": "api", "url": "http://api.internal/health", "enabled": True, "expected_code": 200},
            {"name": "admin", "url": "http://admin.internal/", "enabled": False, "expected_code": 401},
        ],
        "email": {
            "smtp_host": "smtp.example.com",
            "smtp_port": "587",
            "username": "monitor",
            "password": "hunter2",
            "from_email": "monitor@example.com",
            "to_email": "oncall@example.com",
        },
        "webhook": {"enabled": True, "url": "https://hooks.example.com/appmonitor", "secret": "s3cret"},
    }


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(data: dict[str, Any] | str) -> Path:
        path = tmp_path / "config.json"
        path.write_text(data if isinstance(data, str) else json.dumps(data))
        return path

    return _write


@pytest.fixture
def mock_notifier() -> MagicMock:
    notifier = MagicMock()
    notifier.notify = AsyncMock(return_value=None)
    return notifier
