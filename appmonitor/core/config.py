from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when the monitor configuration cannot be loaded."""


class Settings(BaseSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    check_timeout_sec: float = Field(default=10.0, gt=0)
    webhook_timeout_sec: float = Field(default=10.0, gt=0)
    smtp_timeout_sec: float = Field(default=30.0, gt=0)
    user_agent: str = "AppMonitor/1.0"

    model_config = SettingsConfigDict(env_prefix="APPMONITOR_")


settings = Settings()


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"(?:{_DURATION_PART})+")
_DURATION_PART_RE = re.compile(_DURATION_PART)


def parse_duration(value: str) -> float:
    """Parse a Go-style duration string ("30s", "1m30s", "1.5h") into seconds."""
    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text or not _DURATION_RE.fullmatch(text):
        raise ValueError(f"invalid duration {value!r}")
    total = sum(float(num) * _DURATION_UNITS[unit] for num, unit in _DURATION_PART_RE.findall(text))
    return sign * total


class ApplicationConfig(BaseModel):
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    enabled: bool = False
    expected_code: int = Field(default=200, ge=100, le=599)

    model_config = ConfigDict(frozen=True)


class EmailConfig(BaseModel):
    smtp_host: str = ""
    smtp_port: int = Field(default=587, ge=1, le=65535)
    username: str = ""
    password: SecretStr = SecretStr("")
    from_email: str = ""
    to_email: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_host and self.to_email)


class WebhookConfig(BaseModel):
    enabled: bool = False
    url: str = ""
    secret: SecretStr | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.url)


class MonitorConfig(BaseModel):
    check_interval: str
    applications: list[ApplicationConfig] = Field(default_factory=list)
    email: EmailConfig = Field(default_factory=EmailConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)

    model_config = ConfigDict(frozen=True)

    @field_validator("check_interval")
    @classmethod
    def validate_check_interval(cls, v: str) -> str:
        if parse_duration(v) <= 0:
            raise ValueError("check interval must be positive")
        return v

    @model_validator(mode="after")
    def validate_unique_names(self) -> "MonitorConfig":
        seen: set[str] = set()
        for app in self.applications:
            if app.name in seen:
                raise ValueError(f"duplicate application name {app.name!r}")
            seen.add(app.name)
        return self

    @property
    def interval_seconds(self) -> float:
        return parse_duration(self.check_interval)

    @property
    def enabled_applications(self) -> list[ApplicationConfig]:
        return [app for app in self.applications if app.enabled]


def load_config(path: str | Path) -> MonitorConfig:
    """Read and validate the JSON monitor configuration at ``path``.

    Raises ConfigError for unreadable files, malformed JSON and schema errors.
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"failed to open config file: {exc}") from exc

    try:
        return MonitorConfig.model_validate_json(raw)
    except ValidationError as exc:
        problems = "; ".join(_format_error(err) for err in exc.errors())
        raise ConfigError(f"failed to decode config: {problems}") from exc


def _format_error(error: dict) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    msg = error.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg
