"""
Monitoring domain models.

Defines locations, traffic readings and the per-user monitoring session.
All records are immutable snapshots; the session registry replaces them
instead of mutating them in place.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from common.errors import ValidationError
from providers.contracts import RouteResult


class TrafficStatus(str, Enum):
    """Discrete traffic level derived from the delay percentage."""
    CALM = "calm"
    ELEVATED = "elevated"
    SEVERE = "severe"


@dataclass(frozen=True)
class Location:
    """A geographic point."""
    latitude: float
    longitude: float

    def __post_init__(self):
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValidationError(
                f"Location coordinates must be finite, got ({self.latitude}, {self.longitude})"
            )

    def as_query(self) -> str:
        """Format as the "lat,long" string routing APIs expect."""
        return f"{self.latitude},{self.longitude}"


@dataclass(frozen=True)
class TrafficCondition:
    """One traffic reading for a session's commute."""
    free_flow_duration: float  # seconds
    live_duration: float  # seconds
    distance: float  # meters
    status: TrafficStatus
    observed_at: datetime
    estimated_arrival: datetime

    @classmethod
    def from_route(cls, route: RouteResult, observed_at: Optional[datetime] = None) -> "TrafficCondition":
        """
        Build a classified reading from a provider result.

        Args:
            route: Durations and distance returned by the route provider
            observed_at: Instant of the observation (default: now, UTC)

        Returns:
            TrafficCondition with status and estimated arrival filled in

        Raises:
            ValidationError: If a duration is non-positive or the distance negative
        """
        # classifier imports TrafficStatus from this module
        from monitoring.classifier import classify_status

        if not (math.isfinite(route.live_duration) and route.live_duration > 0):
            raise ValidationError(f"live_duration must be positive, got {route.live_duration}")
        if not (math.isfinite(route.distance) and route.distance >= 0):
            raise ValidationError(f"distance must be >= 0, got {route.distance}")

        status = classify_status(route.free_flow_duration, route.live_duration)
        if observed_at is None:
            observed_at = datetime.now(timezone.utc)

        return cls(
            free_flow_duration=route.free_flow_duration,
            live_duration=route.live_duration,
            distance=route.distance,
            status=status,
            observed_at=observed_at,
            estimated_arrival=observed_at + timedelta(seconds=route.live_duration),
        )

    @property
    def delay(self) -> float:
        """Seconds lost to traffic compared to free flow."""
        return self.live_duration - self.free_flow_duration


@dataclass(frozen=True)
class MonitoringSession:
    """A user's commute being watched."""
    user_id: str
    home_location: Location
    current_location: Location
    notification_threshold: float  # percent increase that triggers an alert
    active: bool = True
    last_check: Optional[TrafficCondition] = None
    created_at: datetime = None
    deactivated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.user_id:
            raise ValidationError("user_id is required")
        if not (math.isfinite(self.notification_threshold) and self.notification_threshold > 0):
            raise ValidationError(
                f"notification_threshold must be positive, got {self.notification_threshold}"
            )
        if self.created_at is None:
            object.__setattr__(self, 'created_at', datetime.now(timezone.utc))
