"""
Request/response models for the HTTP and WebSocket API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from monitoring.events import SessionChecked
from monitoring.models import Location, MonitoringSession, TrafficCondition, TrafficStatus
from notifications.models import NotificationPayload, NotificationType
from notifications.service import format_message


class LocationModel(BaseModel):
    """A coordinate pair as sent by clients."""
    lat: float = Field(..., allow_inf_nan=False)
    long: float = Field(..., allow_inf_nan=False)

    def to_domain(self) -> Location:
        return Location(latitude=self.lat, longitude=self.long)

    @classmethod
    def from_domain(cls, location: Location) -> "LocationModel":
        return cls(lat=location.latitude, long=location.longitude)


class CreateSessionRequest(BaseModel):
    """Start (or restart) monitoring a user's commute."""
    user_id: str = Field(..., min_length=1)
    home_location: LocationModel
    current_location: LocationModel
    notification_threshold: Optional[float] = Field(None, gt=0, allow_inf_nan=False)


class UpdateLocationRequest(BaseModel):
    location: LocationModel


class UpdateSettingsRequest(BaseModel):
    home_location: Optional[LocationModel] = None
    notification_threshold: Optional[float] = Field(None, gt=0, allow_inf_nan=False)


class TrafficConditionModel(BaseModel):
    free_flow_duration: float
    live_duration: float
    distance: float
    status: TrafficStatus
    observed_at: datetime
    estimated_arrival: datetime

    @classmethod
    def from_domain(cls, condition: TrafficCondition) -> "TrafficConditionModel":
        return cls(
            free_flow_duration=condition.free_flow_duration,
            live_duration=condition.live_duration,
            distance=condition.distance,
            status=condition.status,
            observed_at=condition.observed_at,
            estimated_arrival=condition.estimated_arrival,
        )


class NotificationModel(BaseModel):
    type: NotificationType
    current_eta: float
    normal_eta: float
    delay: float
    status: TrafficStatus
    message: str

    @classmethod
    def from_domain(cls, payload: NotificationPayload) -> "NotificationModel":
        return cls(**payload.to_dict(), message=format_message(payload))


class SessionModel(BaseModel):
    user_id: str
    home_location: LocationModel
    current_location: LocationModel
    active: bool
    notification_threshold: float
    last_check: Optional[TrafficConditionModel] = None
    created_at: datetime
    deactivated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, session: MonitoringSession) -> "SessionModel":
        return cls(
            user_id=session.user_id,
            home_location=LocationModel.from_domain(session.home_location),
            current_location=LocationModel.from_domain(session.current_location),
            active=session.active,
            notification_threshold=session.notification_threshold,
            last_check=(
                TrafficConditionModel.from_domain(session.last_check) if session.last_check else None
            ),
            created_at=session.created_at,
            deactivated_at=session.deactivated_at,
        )


class SessionResponse(BaseModel):
    session: SessionModel


class LocationUpdateResponse(BaseModel):
    user_id: str
    updated: bool


class TrafficResponse(BaseModel):
    """Latest reading; traffic is null until the first check completes."""
    user_id: str
    traffic: Optional[TrafficConditionModel] = None


class TrafficUpdate(BaseModel):
    """One completed check, as pushed to realtime subscribers."""
    user_id: str
    condition: TrafficConditionModel
    notification: Optional[NotificationModel] = None

    @classmethod
    def from_event(cls, event: SessionChecked) -> "TrafficUpdate":
        return cls(
            user_id=event.user_id,
            condition=TrafficConditionModel.from_domain(event.condition),
            notification=(
                NotificationModel.from_domain(event.notification) if event.notification else None
            ),
        )


class CheckTrafficResponse(BaseModel):
    user_id: str
    checked: bool
    update: Optional[TrafficUpdate] = None
