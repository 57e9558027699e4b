"""Pure functions that build AlertMessage objects for the alerter."""

from __future__ import annotations

import traceback
from collections.abc import Sequence

from src.core.types import WINDOW_MS, WindowKey
from src.monitor.types import AlertMessage, Severity

CRASH_TITLE = "ALERT: your application has crashed."


def format_threshold_alert(
    event_type: str,
    window: WindowKey,
    count: int,
    threshold: int,
    timestamp_ms: int,
    sender: str | None = None,
    recipients: Sequence[str] = (),
) -> AlertMessage:
    """An event type crossed the threshold of one of its windows."""
    return AlertMessage(
        severity=Severity.WARNING,
        title=f"ALERT: {event_type} has reached its {window.value} threshold.",
        fields={
            "event_type": event_type,
            "window": window.value,
            "count": str(count),
            "threshold": str(threshold),
        },
        sender=sender,
        recipients=list(recipients),
        source_event_type=event_type,
        timestamp=timestamp_ms / 1000,
        raw={
            "event_type": event_type,
            "window": window.value,
            "window_ms": WINDOW_MS[window],
            "count": count,
            "threshold": threshold,
            "triggered_at": timestamp_ms,
        },
    )


def format_crash_alert(
    error: BaseException | str,
    sender: str | None = None,
    recipients: Sequence[str] = (),
) -> AlertMessage:
    """The process is about to die because of ``error``."""
    if isinstance(error, BaseException):
        description = f"{type(error).__name__}: {error}"
        trace = "".join(traceback.format_exception(error))
        source = type(error).__name__
    else:
        description = str(error)
        trace = ""
        source = description

    body = f"The uncaught error causing the crash is below:\n\n{description}\n\n{trace}"
    return AlertMessage(
        severity=Severity.CRITICAL,
        title=CRASH_TITLE,
        body=body.rstrip() + "\n",
        fields={"error": description},
        sender=sender,
        recipients=list(recipients),
        source_event_type=source,
    )
