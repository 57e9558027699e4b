"""Convenience factory for wiring an alerter from settings."""

from __future__ import annotations

from src.alerter.alerter import Alerter, Clock
from src.core.config import Settings
from src.core.types import now_ms
from src.monitor.channels import EmailChannel, NotificationChannel, WebhookChannel
from src.monitor.dispatcher import AlertDispatcher


def create_dispatcher(settings: Settings) -> AlertDispatcher:
    """Build a dispatcher with every enabled channel."""
    channels: list[NotificationChannel] = []

    if settings.channels.email.enabled:
        channels.append(
            EmailChannel(settings.channels.email, default_sender=settings.alerter.sender)
        )

    if settings.channels.webhook.enabled:
        channels.append(WebhookChannel(settings.channels.webhook))

    return AlertDispatcher(channels=channels)


def create_alerter(settings: Settings, clock: Clock = now_ms) -> Alerter:
    """Build an unstarted alerter with its event types configured.

    The caller still has to ``await alerter.start()``.
    """
    cfg = settings.alerter
    alerter = Alerter(
        cfg.root_directory,
        sender=cfg.sender,
        contacts=cfg.contacts,
        dispatcher=create_dispatcher(settings),
        clock=clock,
        high_water_mark=cfg.high_water_mark_bytes,
    )
    alerter.registry.apply(settings.events)
    return alerter
