"""
Events emitted by the monitoring core.

The scheduler publishes one SessionChecked per completed check. Transport
adapters (see realtime.py) subscribe by implementing EventPublisher.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from notifications.models import NotificationPayload
from .models import TrafficCondition


@dataclass(frozen=True)
class SessionChecked:
    """A completed traffic check for one user."""
    user_id: str
    condition: TrafficCondition
    notification: Optional[NotificationPayload] = None


class EventPublisher(Protocol):
    async def publish(self, event: SessionChecked) -> None:
        ...
