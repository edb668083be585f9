from fastapi import FastAPI, APIRouter, BackgroundTasks, HTTPException, Request
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from datetime import datetime, timezone
from typing import Optional

from api_models import (
    CheckTrafficResponse,
    CreateSessionRequest,
    LocationUpdateResponse,
    SessionModel,
    SessionResponse,
    TrafficConditionModel,
    TrafficResponse,
    TrafficUpdate,
    UpdateLocationRequest,
    UpdateSettingsRequest,
)
from common.errors import CommuteWatchError, ProviderError, SessionNotFoundError, ValidationError
from config import Settings, load_settings
from monitoring.registry import SessionRegistry
from monitoring.scheduler import TrafficScheduler
from monitoring.service import TrafficMonitorService
from notifications import LoggingNotificationSink, NotificationSink
from providers import RouteProvider, load_providers
from realtime import SessionEventBroadcaster, realtime_router

# Set up logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="Commute Watch API")

# Create routers
api_router = APIRouter(prefix="/api")


def build_monitor(
    settings: Settings,
    route_provider: Optional[RouteProvider] = None,
    notification_sink: Optional[NotificationSink] = None,
):
    """
    Wire registry, scheduler, broadcaster and control surface together.

    Returns:
        (TrafficMonitorService, SessionEventBroadcaster)
    """
    if route_provider is None:
        route_provider = load_providers(settings.mode, api_key=settings.google_maps_api_key).routes
    broadcaster = SessionEventBroadcaster()
    registry = SessionRegistry()
    scheduler = TrafficScheduler(
        registry,
        route_provider,
        notification_sink or LoggingNotificationSink(),
        publishers=[broadcaster],
        check_interval_seconds=settings.check_interval_seconds,
        provider_timeout_seconds=settings.provider_timeout_seconds,
        max_concurrent_checks=settings.max_concurrent_checks,
        inactive_ttl_seconds=settings.inactive_session_ttl_seconds,
    )
    monitor = TrafficMonitorService(
        registry,
        scheduler,
        default_threshold=settings.default_notification_threshold,
    )
    return monitor, broadcaster


def get_monitor(request: Request) -> TrafficMonitorService:
    return request.app.state.monitor


async def establish_baseline(monitor: TrafficMonitorService, user_id: str):
    """Run the first check for a new session so it has a reading to compare against."""
    try:
        await monitor.check_now(user_id)
    except CommuteWatchError as e:
        logger.warning(f"Initial traffic check failed for user {user_id}: {e}")


# ==================== API Routes ====================

@api_router.get("/")
async def root():
    return {"message": "Commute Watch API", "version": "1.0"}


@api_router.get("/health")
async def health_check(request: Request):
    health = get_monitor(request).health()
    health["realtime_subscribers"] = request.app.state.broadcaster.subscriber_count
    health["timestamp"] = datetime.now(timezone.utc).isoformat()
    return health


@api_router.post("/session", response_model=SessionResponse)
async def create_session(payload: CreateSessionRequest, request: Request, background_tasks: BackgroundTasks):
    """Create or replace a monitoring session and take a first reading in the background."""
    monitor = get_monitor(request)
    try:
        session = await monitor.create_session(
            payload.user_id,
            payload.home_location.to_domain(),
            payload.current_location.to_domain(),
            payload.notification_threshold,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        f"Created monitoring session for user {session.user_id}: "
        f"home=({session.home_location.latitude}, {session.home_location.longitude}) "
        f"current=({session.current_location.latitude}, {session.current_location.longitude}) "
        f"threshold={session.notification_threshold}%"
    )
    background_tasks.add_task(establish_baseline, monitor, session.user_id)
    return SessionResponse(session=SessionModel.from_domain(session))


@api_router.get("/session/{user_id}", response_model=SessionResponse)
async def get_session(user_id: str, request: Request):
    try:
        session = get_monitor(request).get_session(user_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SessionResponse(session=SessionModel.from_domain(session))


@api_router.put("/session/{user_id}/location", response_model=LocationUpdateResponse)
async def update_location(user_id: str, payload: UpdateLocationRequest, request: Request):
    try:
        updated = await get_monitor(request).update_location(user_id, payload.location.to_domain())
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return LocationUpdateResponse(user_id=user_id, updated=updated)


@api_router.put("/session/{user_id}/settings", response_model=SessionResponse)
async def update_settings(user_id: str, payload: UpdateSettingsRequest, request: Request):
    try:
        session = await get_monitor(request).update_settings(
            user_id,
            home_location=payload.home_location.to_domain() if payload.home_location else None,
            notification_threshold=payload.notification_threshold,
        )
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SessionResponse(session=SessionModel.from_domain(session))


@api_router.delete("/session/{user_id}", response_model=SessionResponse)
async def stop_session(user_id: str, request: Request):
    try:
        session = await get_monitor(request).stop_session(user_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SessionResponse(session=SessionModel.from_domain(session))


@api_router.get("/traffic/{user_id}", response_model=TrafficResponse)
async def get_traffic(user_id: str, request: Request):
    try:
        condition = get_monitor(request).latest_condition(user_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return TrafficResponse(
        user_id=user_id,
        traffic=TrafficConditionModel.from_domain(condition) if condition else None,
    )


@api_router.post("/traffic/{user_id}/check", response_model=CheckTrafficResponse)
async def check_traffic(user_id: str, request: Request):
    """Force an immediate traffic check for one user."""
    try:
        event = await get_monitor(request).check_now(user_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=502, detail=f"Route provider returned invalid data: {e}")

    return CheckTrafficResponse(
        user_id=user_id,
        checked=event is not None,
        update=TrafficUpdate.from_event(event) if event else None,
    )


# Add CORS middleware first, before including router
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers in the main app
app.include_router(api_router)
app.include_router(realtime_router)


@app.on_event("startup")
async def start_monitoring():
    settings = load_settings()
    logging.getLogger().setLevel(settings.log_level)
    monitor, broadcaster = build_monitor(settings)
    app.state.settings = settings
    app.state.monitor = monitor
    app.state.broadcaster = broadcaster
    monitor.scheduler.start()
    logger.info(f"Commute Watch started in {settings.mode} mode")


@app.on_event("shutdown")
async def stop_monitoring():
    monitor = getattr(app.state, "monitor", None)
    if monitor is not None:
        monitor.scheduler.stop()
        await monitor.scheduler.wait_idle()


def main():
    import uvicorn

    settings = load_settings()
    uvicorn.run("server:app", host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
