"""
Traffic Monitor Service - Control surface for the presentation layer.

Handles:
- Creating (or replacing) a user's monitoring session
- Location and settings updates
- Stopping monitoring
- Forced checks and latest readings
- Health reporting
"""

import logging
from typing import Optional

from .events import SessionChecked
from .models import Location, MonitoringSession, TrafficCondition
from .registry import SessionRegistry
from .scheduler import TrafficScheduler

logger = logging.getLogger(__name__)


class TrafficMonitorService:
    """Entry point used by the HTTP and WebSocket adapters."""

    def __init__(
        self,
        registry: SessionRegistry,
        scheduler: TrafficScheduler,
        default_threshold: float = 20,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.default_threshold = default_threshold

    async def create_session(
        self,
        user_id: str,
        home_location: Location,
        current_location: Location,
        notification_threshold: Optional[float] = None,
    ) -> MonitoringSession:
        """
        Start monitoring a user's commute, replacing any previous session.

        Args:
            user_id: User ID
            home_location: Destination of the commute
            current_location: Where the user is now
            notification_threshold: Percent increase that triggers an alert
                (default: configured threshold)

        Raises:
            ValidationError: If inputs invalid
        """
        session = MonitoringSession(
            user_id=user_id,
            home_location=home_location,
            current_location=current_location,
            notification_threshold=(
                notification_threshold if notification_threshold is not None else self.default_threshold
            ),
        )
        return await self.registry.create(session)

    def get_session(self, user_id: str) -> MonitoringSession:
        return self.registry.require(user_id)

    async def update_location(self, user_id: str, location: Location) -> bool:
        """
        Update a user's current location.

        Returns:
            False when the session is inactive and the update was ignored

        Raises:
            SessionNotFoundError: If the user has no session
        """
        self.registry.require(user_id)
        return await self.registry.update_current_location(user_id, location)

    async def update_settings(
        self,
        user_id: str,
        home_location: Optional[Location] = None,
        notification_threshold: Optional[float] = None,
    ) -> MonitoringSession:
        return await self.registry.update_settings(
            user_id,
            home_location=home_location,
            notification_threshold=notification_threshold,
        )

    def latest_condition(self, user_id: str) -> Optional[TrafficCondition]:
        return self.registry.require(user_id).last_check

    async def stop_session(self, user_id: str) -> MonitoringSession:
        """Stop monitoring for a user. The session is kept but inactive."""
        session = await self.registry.set_active(user_id, False)
        logger.info(f"Stopped monitoring for user {user_id}")
        return session

    async def check_now(self, user_id: str) -> Optional[SessionChecked]:
        return await self.scheduler.check_now(user_id)

    def health(self) -> dict:
        last_sweep = self.scheduler.last_sweep_at
        return {
            "status": "healthy",
            "scheduler": self.scheduler.state.value,
            "check_interval_seconds": self.scheduler.check_interval_seconds,
            "last_sweep_at": last_sweep.isoformat() if last_sweep else None,
            "sessions": self.registry.counts(),
            "session_locks": self.registry.lock_count,
        }
