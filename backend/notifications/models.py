"""
Notification domain models.

Defines the payload handed to a notification sink and the notify / no-notify
decision produced for each traffic check.
"""

from dataclasses import dataclass, asdict
from typing import Optional
from enum import Enum

from monitoring.models import TrafficStatus


class NotificationType(str, Enum):
    """Types of traffic notifications."""
    BUILDING_UP = "building_up"
    CLEARING = "clearing"


@dataclass(frozen=True)
class NotificationPayload:
    """Content of a traffic notification. Durations are in seconds."""
    type: NotificationType
    current_eta: float  # live travel time
    normal_eta: float  # free-flow travel time
    delay: float
    status: TrafficStatus

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dict."""
        doc = asdict(self)
        doc['type'] = self.type.value
        doc['status'] = self.status.value
        return doc


@dataclass(frozen=True)
class NotificationDecision:
    """Outcome of evaluating one new reading against the previous one."""
    notify: bool
    payload: Optional[NotificationPayload] = None


NO_NOTIFICATION = NotificationDecision(notify=False)
