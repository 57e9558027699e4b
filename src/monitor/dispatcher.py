"""Central alert dispatcher — fans messages out to channels."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from src.monitor.channels import NotificationChannel
from src.monitor.types import AlertMessage

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes alert messages to notification channels.

    - Every message is logged via *decision_logger*.
    - ``notify`` is fire-and-forget: delivery runs as a background task and
      failures are logged, never retried and never raised.
    - ``send`` is awaited by callers that must know delivery was attempted
      before they continue (the crash path).
    """

    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels: list[NotificationChannel] = channels or []
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    @property
    def pending(self) -> int:
        """Number of background deliveries still in flight."""
        return len(self._pending)

    # ── Entry points ────────────────────────────────────────────

    def notify(self, msg: AlertMessage) -> None:
        """Dispatch without waiting for delivery."""
        self.spawn(self.send(msg))

    async def send(self, msg: AlertMessage) -> bool:
        """Dispatch and wait. True if at least one channel delivered."""
        self._log_decision(msg)
        return await self._dispatch_to_channels(msg)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run ``coro`` in the background, logging instead of raising.

        Outside a running event loop the coroutine runs to completion
        before this returns.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                asyncio.run(coro)
            except Exception:
                logger.exception("background_task_error")
            return

        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background_task_error", error=repr(exc))

    async def wait_idle(self) -> None:
        """Wait for every background delivery started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Internal routing ────────────────────────────────────────

    def _log_decision(self, msg: AlertMessage) -> None:
        decision_logger.info(
            "decision",
            severity=msg.severity.name,
            title=msg.title,
            body=msg.body,
            source_event_type=msg.source_event_type,
            fields=msg.fields,
            recipients=msg.recipients,
        )

    async def _dispatch_to_channels(self, msg: AlertMessage) -> bool:
        delivered = False
        for ch in self._channels:
            try:
                delivered = await ch.send(msg) or delivered
            except Exception:
                logger.exception(
                    "channel_dispatch_error",
                    channel=type(ch).__name__,
                    title=msg.title,
                )
        return delivered

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        await self.wait_idle()
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=type(ch).__name__)
