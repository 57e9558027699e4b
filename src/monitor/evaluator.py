"""ThresholdEvaluator — per-window threshold and cooldown checks."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from src.core.types import WINDOW_MS, EventSettings, WindowKey
from src.tracker.store import OccurrenceStore

logger = structlog.get_logger(__name__)

# Called as (settings, window, count, now) after last_alert has been set to now.
AlertHandler = Callable[[EventSettings, WindowKey, int, int], None]


class ThresholdEvaluator:
    """Decides which windows of an event type fire for an occurrence.

    For minute, hour and day in turn:
      1. skip the window if it is disabled or has no threshold
      2. skip it while the previous alert's cooldown is running
      3. count occurrences in ``[now - window, now]``
      4. if the count reaches the threshold, stamp ``last_alert`` and
         hand off to ``on_alert``
    """

    def __init__(self, store: OccurrenceStore, on_alert: AlertHandler) -> None:
        self._store = store
        self._on_alert = on_alert

    def check(self, settings: EventSettings, now: int) -> list[WindowKey]:
        fired: list[WindowKey] = []
        for window_key in WindowKey:
            window = settings.windows[window_key]

            if not window.enabled:
                continue
            if window.threshold is None:
                logger.debug(
                    "window_without_threshold",
                    event_type=settings.key,
                    window=window_key.value,
                )
                continue
            if window.in_cooldown(now):
                continue

            count = self._store.count_in_range(
                settings.key,
                start=now - WINDOW_MS[window_key],
            )
            if count < window.threshold:
                continue

            window.last_alert = now
            logger.info(
                "alert_triggered",
                event_type=settings.key,
                window=window_key.value,
                count=count,
                threshold=window.threshold,
            )
            fired.append(window_key)
            self._on_alert(settings, window_key, count, now)
        return fired
