"""
Traffic Notification Evaluator - Pure domain logic

Compares a new traffic reading against the session's previous reading and
decides whether the change is worth telling the user about.

Hysteresis:
- Escalation ("building up") needs the live duration to grow by at least the
  session threshold since the previous reading, and is suppressed while the
  previous reading was already ELEVATED.
- Clearing needs the live duration to drop below 80% of the previous one,
  the previous reading to be non-calm and the new reading to be CALM.

The comparison baseline is always the immediately preceding reading. Slow
drift made of many sub-threshold steps is never flagged.
"""

import math
from typing import Optional

from common.errors import ValidationError
from monitoring.models import TrafficCondition, TrafficStatus
from .models import (
    NotificationDecision,
    NotificationPayload,
    NotificationType,
    NO_NOTIFICATION,
)


class NotificationEvaluator:
    """Pure functions for traffic change notifications."""

    # New live duration must fall below this fraction of the previous one
    CLEARING_RATIO = 0.8

    @staticmethod
    def evaluate(
        previous: Optional[TrafficCondition],
        current: TrafficCondition,
        threshold_pct: float,
    ) -> NotificationDecision:
        """
        Decide whether a new reading should notify the user.

        Args:
            previous: The session's last stored reading (None before the first check)
            current: The reading just observed
            threshold_pct: Percent increase over the previous live duration
                that counts as traffic building up

        Returns:
            NotificationDecision; payload is set only when notify is True

        Raises:
            ValidationError: If a previous reading exists and threshold_pct is
                not a positive number
        """
        if previous is None:
            return NO_NOTIFICATION

        if not (math.isfinite(threshold_pct) and threshold_pct > 0):
            raise ValidationError(f"threshold_pct must be positive, got {threshold_pct}")

        if NotificationEvaluator._is_building_up(previous, current, threshold_pct):
            return NotificationDecision(
                notify=True,
                payload=NotificationPayload(
                    type=NotificationType.BUILDING_UP,
                    current_eta=current.live_duration,
                    normal_eta=current.free_flow_duration,
                    delay=current.delay,
                    status=current.status,
                ),
            )

        if NotificationEvaluator._is_clearing(previous, current):
            return NotificationDecision(
                notify=True,
                payload=NotificationPayload(
                    type=NotificationType.CLEARING,
                    current_eta=current.live_duration,
                    normal_eta=current.free_flow_duration,
                    delay=0,
                    status=TrafficStatus.CALM,
                ),
            )

        return NO_NOTIFICATION

    @staticmethod
    def _is_building_up(
        previous: TrafficCondition,
        current: TrafficCondition,
        threshold_pct: float,
    ) -> bool:
        escalation_floor = previous.live_duration * (1 + threshold_pct / 100)
        return (
            current.live_duration >= escalation_floor
            and previous.status != TrafficStatus.ELEVATED
        )

    @staticmethod
    def _is_clearing(previous: TrafficCondition, current: TrafficCondition) -> bool:
        return (
            current.live_duration < previous.live_duration * NotificationEvaluator.CLEARING_RATIO
            and previous.status != TrafficStatus.CALM
            and current.status == TrafficStatus.CALM
        )
