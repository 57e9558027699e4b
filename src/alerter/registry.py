"""ConfigurationRegistry — per-event-type settings and their configurators."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from src.core.config import EventConfig
from src.core.types import (
    ALL,
    DEFAULT,
    RESERVED_KEYS,
    EventSettings,
    TriggerCallback,
    WindowConfig,
    WindowKey,
)

logger = structlog.get_logger(__name__)


def occurrence_key(occurrence: object) -> str:
    """Map an occurrence (or something naming one) to its event type.

    Strings are used verbatim, exceptions and exception classes by class
    name.  Anything else falls back to ``DEFAULT``.
    """
    if isinstance(occurrence, str):
        return occurrence
    if isinstance(occurrence, BaseException):
        return type(occurrence).__name__
    if isinstance(occurrence, type) and issubclass(occurrence, BaseException):
        return occurrence.__name__
    return DEFAULT


class WindowConfigurator:
    """Edits one window of one event type. Every setter returns ``self``."""

    def __init__(self, window: WindowConfig) -> None:
        self._window = window

    def on(self) -> WindowConfigurator:
        self._window.enabled = True
        return self

    def off(self) -> WindowConfigurator:
        self._window.enabled = False
        return self

    def threshold(self, count: int) -> WindowConfigurator:
        """Occurrences inside the window needed to alert (must be positive)."""
        self._window.threshold = count
        return self

    def cooldown(self, minutes: int) -> WindowConfigurator:
        """Minutes after an alert during which the window stays quiet."""
        self._window.cooldown = minutes
        return self


class EventConfigurator:
    """Edits the settings of one event type.

    Usage::

        registry.one("db_error").log().minute().on().threshold(2).cooldown(60)
    """

    def __init__(self, settings: EventSettings, root: Path) -> None:
        self._settings = settings
        self._root = root

    @property
    def settings(self) -> EventSettings:
        return self._settings

    def watch(self) -> EventConfigurator:
        self._settings.watch = True
        return self

    def ignore(self) -> EventConfigurator:
        self._settings.watch = False
        return self

    def log(self, path: str | Path | bool | None = True) -> EventConfigurator:
        """Persist occurrences. ``True`` means ``{root}/{key}.log``."""
        if path is True:
            self._settings.log_path = self._root / f"{self._settings.key}.log"
        elif path is False or path is None:
            self._settings.log_path = None
        else:
            self._settings.log_path = Path(path)
        return self

    def act(self, callback: TriggerCallback) -> EventConfigurator:
        """Side effect run with ``(event_type, window)`` whenever an alert fires."""
        self._settings.on_trigger = callback
        return self

    def minute(self) -> WindowConfigurator:
        return WindowConfigurator(self._settings.windows[WindowKey.MINUTE])

    def hour(self) -> WindowConfigurator:
        return WindowConfigurator(self._settings.windows[WindowKey.HOUR])

    def day(self) -> WindowConfigurator:
        return WindowConfigurator(self._settings.windows[WindowKey.DAY])


class ConfigurationRegistry:
    """Owns the EventSettings of every known event type.

    ``ALL`` and ``DEFAULT`` always exist.  Other keys are created on first
    reference; a key first seen through an occurrence starts as a copy of
    ``DEFAULT`` (minus its log file and alert history).
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._settings: dict[str, EventSettings] = {
            ALL: EventSettings(key=ALL),
            DEFAULT: EventSettings(key=DEFAULT),
        }

    def __contains__(self, key: object) -> bool:
        return key in self._settings

    def __len__(self) -> int:
        return len(self._settings)

    def get(self, key: str) -> EventSettings | None:
        return self._settings.get(key)

    def ensure(self, key: str, inherit: bool = False) -> EventSettings:
        """Return the settings for ``key``, creating them if needed."""
        settings = self._settings.get(key)
        if settings is None:
            # Keys first seen through an occurrence copy DEFAULT instead of
            # starting as watched with every window off. This extends the
            # plain lazy default so ``default()`` can configure unseen keys.
            if inherit and key not in RESERVED_KEYS:
                settings = self._settings[DEFAULT].inherit(key)
            else:
                settings = EventSettings(key=key)
            self._settings[key] = settings
            logger.debug("event_type_registered", event_type=key, inherited=inherit)
        return settings

    # ── Configurators ─────────────────────────────────────────────

    def one(self, occurrence: object) -> EventConfigurator:
        """Configure the event type named by ``occurrence``."""
        return EventConfigurator(self.ensure(occurrence_key(occurrence)), self._root)

    def all(self) -> EventConfigurator:
        """Configure the aggregate across every occurrence."""
        return EventConfigurator(self._settings[ALL], self._root)

    def default(self) -> EventConfigurator:
        """Configure the template for event types never configured explicitly."""
        return EventConfigurator(self._settings[DEFAULT], self._root)

    def apply(self, events: Mapping[str, EventConfig]) -> None:
        """Apply the ``events`` section of the YAML settings."""
        for key, cfg in events.items():
            configurator = EventConfigurator(self.ensure(key), self._root)
            if cfg.watch:
                configurator.watch()
            else:
                configurator.ignore()
            configurator.log(cfg.log)
            for window_key in WindowKey:
                window_cfg = getattr(cfg, window_key.value)
                window = self._settings[key].windows[window_key]
                window.enabled = window_cfg.enabled
                window.threshold = window_cfg.threshold
                window.cooldown = window_cfg.cooldown

    # ── Persistence views ─────────────────────────────────────────

    def log_targets(self) -> dict[str, Path]:
        """Watched event types with a log file, for start-up recovery."""
        return {
            s.key: s.log_path
            for s in self._settings.values()
            if s.watch and s.log_path is not None
        }

    def snapshot(self) -> dict[str, dict[str, int | None]]:
        return {key: s.last_alerts() for key, s in self._settings.items()}

    def restore(self, state: Mapping[str, Any]) -> int:
        """Restore ``last_alert`` values for configured keys. Returns the count."""
        restored = 0
        for key, saved in state.items():
            settings = self._settings.get(key)
            if settings is None or not isinstance(saved, Mapping):
                continue
            for window_key in WindowKey:
                settings.windows[window_key].last_alert = saved.get(window_key.value)
            restored += 1
        return restored
