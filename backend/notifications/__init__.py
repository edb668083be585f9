"""
Notifications package - Traffic change alerts

Submodules:
- evaluator: Pure hysteresis logic deciding when to notify
- models: Notification payload and decision types
- service: Delivery contract, logging sink and message formatting
"""

from .evaluator import NotificationEvaluator
from .models import NotificationDecision, NotificationPayload, NotificationType
from .service import LoggingNotificationSink, NotificationSink, format_duration, format_message

__all__ = [
    "NotificationEvaluator",
    "NotificationDecision",
    "NotificationPayload",
    "NotificationType",
    "LoggingNotificationSink",
    "NotificationSink",
    "format_duration",
    "format_message",
]
