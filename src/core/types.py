"""Domain types shared by the tracker, persistence and alerting layers."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, NonNegativeInt, PositiveInt

# Reserved event types.
ALL = "_all"
DEFAULT = "_default"

RESERVED_KEYS = frozenset({ALL, DEFAULT})

# Occurrences older than this are dropped on recovery and pruned from memory.
RETENTION_MS = 86_400_000

_MINUTE_MS = 60_000


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class WindowKey(StrEnum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


WINDOW_MS: dict[WindowKey, int] = {
    WindowKey.MINUTE: 60_000,
    WindowKey.HOUR: 3_600_000,
    WindowKey.DAY: 86_400_000,
}


class WindowConfig(BaseModel):
    """Threshold and cooldown settings for one lookback window."""

    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = False
    threshold: PositiveInt | None = None
    cooldown: NonNegativeInt | None = None  # minutes
    last_alert: int | None = None

    @property
    def cooldown_ms(self) -> int:
        return (self.cooldown or 0) * _MINUTE_MS

    def in_cooldown(self, now: int) -> bool:
        """True while a previous alert still suppresses this window."""
        if self.last_alert is None or self.cooldown is None:
            return False
        return now - self.last_alert < self.cooldown_ms


TriggerCallback = Callable[[str, WindowKey], Awaitable[None] | None]


def _noop_trigger(event_type: str, window: WindowKey) -> None:
    return None


def _blank_windows() -> dict[WindowKey, WindowConfig]:
    return {key: WindowConfig() for key in WindowKey}


@dataclass
class EventSettings:
    """Per-event-type settings: watch flag, log file, windows and side effect."""

    key: str
    watch: bool = True
    log_path: Path | None = None
    windows: dict[WindowKey, WindowConfig] = field(default_factory=_blank_windows)
    on_trigger: TriggerCallback = _noop_trigger

    def inherit(self, key: str) -> EventSettings:
        """Copy this template for a newly seen key (fresh alert state, no log)."""
        windows = {
            name: window.model_copy(update={"last_alert": None})
            for name, window in self.windows.items()
        }
        return EventSettings(
            key=key,
            watch=self.watch,
            windows=windows,
            on_trigger=self.on_trigger,
        )

    def last_alerts(self) -> dict[str, int | None]:
        return {name.value: self.windows[name].last_alert for name in WindowKey}
