"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, NonNegativeInt, PositiveInt, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class AlerterConfig(BaseModel):
    """Where state lives and who gets told."""

    root_directory: Path = Path("data")
    sender: str | None = None
    contacts: list[str] = []
    high_water_mark_bytes: PositiveInt = 16_384


class EmailConfig(BaseModel):
    """SMTP delivery configuration."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 25
    use_tls: bool = False
    username: str = ""
    password: SecretStr = SecretStr("")
    timeout_secs: float = 10.0


class WebhookConfig(BaseModel):
    """Generic JSON webhook delivery configuration."""

    enabled: bool = False
    url: SecretStr = SecretStr("")
    timeout_secs: float = 10.0


class ChannelsConfig(BaseModel):
    """Container for all notification channel configurations."""

    email: EmailConfig = EmailConfig()
    webhook: WebhookConfig = WebhookConfig()


class WindowSettingsConfig(BaseModel):
    """One window's threshold settings as written in YAML."""

    enabled: bool = False
    threshold: PositiveInt | None = None
    cooldown: NonNegativeInt | None = None


class EventConfig(BaseModel):
    """Per-event-type settings as written in YAML.

    ``log`` may be ``true`` (use ``{root}/{key}.log``), ``false`` (no log) or
    an explicit path.
    """

    watch: bool = True
    log: bool | str = False
    minute: WindowSettingsConfig = WindowSettingsConfig()
    hour: WindowSettingsConfig = WindowSettingsConfig()
    day: WindowSettingsConfig = WindowSettingsConfig()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    file: Path | None = None
    # per-logger level overrides, e.g. {"aiohttp": "WARNING"}
    loggers: dict[str, str] = {}


class Settings(BaseModel):
    """Root settings container."""

    alerter: AlerterConfig = AlerterConfig()
    channels: ChannelsConfig = ChannelsConfig()
    events: dict[str, EventConfig] = {}
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
