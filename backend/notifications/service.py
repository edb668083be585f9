"""
Notification Service - Delivery contract and default sink.

Handles:
- The NotificationSink contract the scheduler delivers through
- Human-readable message formatting
- A logging sink used until a real channel (push, SMS, email) is wired in
"""

import logging
from typing import Protocol

from .models import NotificationPayload, NotificationType

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def deliver(self, user_id: str, payload: NotificationPayload) -> None:
        ...


def format_duration(seconds: float) -> str:
    """
    Format a duration the way users read it.

    Examples: 540 -> "9min", 3900 -> "1h 5min"
    """
    minutes = int(max(seconds, 0) // 60)
    hours = minutes // 60
    remaining_minutes = minutes % 60

    if hours > 0:
        return f"{hours}h {remaining_minutes}min"
    return f"{minutes}min"


def format_message(payload: NotificationPayload) -> str:
    """Format the notification payload into a user-facing message."""
    current_eta = format_duration(payload.current_eta)
    if payload.type == NotificationType.BUILDING_UP:
        return (
            f"Traffic is building up! Current ETA: {current_eta} "
            f"({format_duration(payload.delay)} delay). "
            f"Might want to wait a bit before heading out."
        )
    return f"Traffic is clearing up! Current ETA: {current_eta}. Good time to head out."


class LoggingNotificationSink:
    """Sink that writes notifications to the application log."""

    async def deliver(self, user_id: str, payload: NotificationPayload) -> None:
        """
        Log a notification for a user.

        Args:
            user_id: The user to notify
            payload: The notification content
        """
        logger.info(
            f"Notification for user {user_id}: type={payload.type.value} "
            f"status={payload.status.value} "
            f"current_eta={format_duration(payload.current_eta)} "
            f"normal_eta={format_duration(payload.normal_eta)} "
            f"delay={format_duration(payload.delay)} | {format_message(payload)}"
        )
