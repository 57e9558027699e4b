"""Notification channels — email and webhook delivery."""

from __future__ import annotations

import abc
import asyncio
import smtplib
from email.message import EmailMessage

import aiohttp
import structlog

from src.core.config import EmailConfig, WebhookConfig
from src.monitor.types import AlertMessage

logger = structlog.get_logger(__name__)


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> bool:
        """Send an alert message. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class EmailChannel(NotificationChannel):
    """Delivers alerts by SMTP, one message per alert.

    smtplib blocks, so each send runs in the loop's default executor.
    """

    def __init__(self, config: EmailConfig, default_sender: str | None = None) -> None:
        self._config = config
        self._default_sender = default_sender

    def build_message(self, msg: AlertMessage) -> EmailMessage | None:
        """Build the MIME message, or None when there is nobody to send to."""
        sender = msg.sender or self._default_sender
        if not sender or not msg.recipients:
            return None

        email = EmailMessage()
        email["From"] = sender
        email["To"] = ",".join(msg.recipients)
        email["Subject"] = msg.title
        lines = [msg.body] if msg.body else []
        if msg.fields:
            lines.append("\n".join(f"{k}: {v}" for k, v in msg.fields.items()))
        email.set_content("\n\n".join(lines))
        return email

    async def send(self, msg: AlertMessage) -> bool:
        email = self.build_message(msg)
        if email is None:
            logger.warning("email_not_addressed", title=msg.title)
            return False

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._send_sync, email)
        except (OSError, smtplib.SMTPException):
            logger.exception("email_send_error", title=msg.title)
            return False
        return True

    def _send_sync(self, email: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout_secs) as server:
            if cfg.use_tls:
                server.starttls()
            if cfg.username:
                server.login(cfg.username, cfg.password.get_secret_value())
            server.send_message(email)

    async def close(self) -> None:
        return None


class WebhookChannel(NotificationChannel):
    """POSTs each alert as JSON to a configured URL."""

    def __init__(self, config: WebhookConfig) -> None:
        self._url = config.url.get_secret_value()
        self._timeout = aiohttp.ClientTimeout(total=config.timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, msg: AlertMessage) -> bool:
        payload = {
            "severity": msg.severity.name,
            "from": msg.sender,
            "to": ",".join(msg.recipients),
            "subject": msg.title,
            "body": msg.body,
            "fields": msg.fields,
            "event_type": msg.source_event_type,
            "timestamp": msg.timestamp,
        }

        try:
            session = self._get_session()
            async with session.post(self._url, json=payload) as resp:
                if 200 <= resp.status < 300:
                    return True
                body = await resp.text()
                logger.warning(
                    "webhook_send_failed",
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except Exception:
            logger.exception("webhook_send_error")
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
