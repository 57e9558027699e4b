"""Core module — config, types, logging, exceptions."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.exceptions import AlerterError, LifecycleError, RecoveryIOError
from src.core.logging import setup_logging
from src.core.types import (
    ALL,
    DEFAULT,
    RETENTION_MS,
    WINDOW_MS,
    EventSettings,
    WindowConfig,
    WindowKey,
    now_ms,
)

__all__ = [
    "ALL",
    "DEFAULT",
    "RETENTION_MS",
    "WINDOW_MS",
    "AlerterError",
    "EventSettings",
    "LifecycleError",
    "RecoveryIOError",
    "Settings",
    "WindowConfig",
    "WindowKey",
    "get_settings",
    "load_settings",
    "now_ms",
    "reset_settings",
    "setup_logging",
]
