"""Alert evaluation and notification delivery."""

from src.monitor.channels import EmailChannel, NotificationChannel, WebhookChannel
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.evaluator import ThresholdEvaluator
from src.monitor.formatters import format_crash_alert, format_threshold_alert
from src.monitor.types import AlertMessage, Severity

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "EmailChannel",
    "NotificationChannel",
    "Severity",
    "ThresholdEvaluator",
    "WebhookChannel",
    "format_crash_alert",
    "format_threshold_alert",
]
