"""Alerter exception hierarchy."""

from __future__ import annotations


class AlerterError(Exception):
    """Base exception for all alerter errors."""


class LifecycleError(AlerterError):
    """Start-up was requested on an alerter that has already been started."""


class RecoveryIOError(AlerterError):
    """A log or state file could not be read during start-up recovery.

    ``timestamps`` holds whatever was recovered before the failure,
    keyed by event type; it is not rolled back.
    """

    def __init__(self, message: str, timestamps: dict[str, list[int]] | None = None) -> None:
        super().__init__(message)
        self.timestamps: dict[str, list[int]] = timestamps or {}
