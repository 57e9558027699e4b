"""Alerter — the public surface: configure, start, tell."""

from src.alerter.alerter import Alerter
from src.alerter.registry import (
    ConfigurationRegistry,
    EventConfigurator,
    WindowConfigurator,
    occurrence_key,
)

__all__ = [
    "Alerter",
    "ConfigurationRegistry",
    "EventConfigurator",
    "WindowConfigurator",
    "occurrence_key",
]
