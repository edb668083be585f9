"""
Traffic status classification.

Maps a (free-flow, live) duration pair to a discrete status using the
delay percentage:

    delay_pct = (live - free_flow) / free_flow * 100

    delay_pct < 10  -> calm
    delay_pct < 30  -> elevated
    otherwise       -> severe
"""

import math

from common.errors import ValidationError
from monitoring.models import TrafficStatus

CALM_BELOW_PCT = 10
ELEVATED_BELOW_PCT = 30


def delay_percentage(free_flow_duration: float, live_duration: float) -> float:
    """
    Percent of extra travel time caused by traffic.

    Raises:
        ValidationError: If free_flow_duration is not a positive finite number
            or live_duration is not finite
    """
    if not (math.isfinite(free_flow_duration) and free_flow_duration > 0):
        raise ValidationError(
            f"free_flow_duration must be positive, got {free_flow_duration}"
        )
    if not math.isfinite(live_duration):
        raise ValidationError(f"live_duration must be finite, got {live_duration}")

    return (live_duration - free_flow_duration) / free_flow_duration * 100


def classify_status(free_flow_duration: float, live_duration: float) -> TrafficStatus:
    """Classify a travel-time pair into calm / elevated / severe."""
    delay_pct = delay_percentage(free_flow_duration, live_duration)

    if delay_pct < CALM_BELOW_PCT:
        return TrafficStatus.CALM
    if delay_pct < ELEVATED_BELOW_PCT:
        return TrafficStatus.ELEVATED
    return TrafficStatus.SEVERE
