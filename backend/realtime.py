"""
Realtime traffic updates over WebSocket.

The broadcaster receives every SessionChecked from the scheduler and fans it
out to subscriber queues. Clients connected to /ws receive
{"event": "traffic_update", "data": {...}} messages and may send
{"event": "check_traffic", "user_id": "..."} to request a forced check.
"""

import asyncio
import contextlib
import logging
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api_models import TrafficUpdate
from common.errors import CommuteWatchError
from monitoring.events import SessionChecked
from monitoring.service import TrafficMonitorService

logger = logging.getLogger(__name__)

realtime_router = APIRouter()


class SessionEventBroadcaster:
    """
    Pub/sub of check results to connected clients.
    Non-blocking: a subscriber whose queue is full misses the update.
    """

    def __init__(self):
        self._subscribers: Set[asyncio.Queue] = set()
        self._lock = asyncio.Lock()

    async def subscribe(self, queue_size: int = 50) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=queue_size)
        async with self._lock:
            self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        async with self._lock:
            self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: SessionChecked) -> None:
        message = {
            "event": "traffic_update",
            "data": TrafficUpdate.from_event(event).model_dump(mode="json"),
        }
        async with self._lock:
            subscribers = self._subscribers.copy()

        for queue in subscribers:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning(f"Skipping slow realtime subscriber for user {event.user_id}")


async def _forward_updates(websocket: WebSocket, queue: asyncio.Queue) -> None:
    try:
        while True:
            message = await queue.get()
            await websocket.send_json(message)
    except WebSocketDisconnect:
        logger.debug("Realtime client went away while forwarding updates")


async def _handle_command(websocket: WebSocket, monitor: TrafficMonitorService, message) -> None:
    if not isinstance(message, dict) or message.get("event") != "check_traffic":
        await websocket.send_json({"event": "error", "detail": "Unsupported command"})
        return

    user_id = message.get("user_id")
    if not isinstance(user_id, str) or not user_id:
        await websocket.send_json({"event": "error", "detail": "user_id must be a non-empty string"})
        return

    try:
        # the result reaches this client through the broadcaster
        await monitor.check_now(user_id)
    except CommuteWatchError as e:
        logger.warning(f"Realtime check_traffic failed for user {user_id}: {e}")
        await websocket.send_json({"event": "error", "user_id": user_id, "detail": str(e)})


@realtime_router.websocket("/ws")
async def traffic_updates_socket(websocket: WebSocket):
    """Stream traffic updates and accept forced-check requests."""
    await websocket.accept()
    broadcaster: SessionEventBroadcaster = websocket.app.state.broadcaster
    monitor: TrafficMonitorService = websocket.app.state.monitor

    queue = await broadcaster.subscribe()
    forwarder = asyncio.create_task(_forward_updates(websocket, queue))
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"event": "error", "detail": "Messages must be JSON"})
                continue
            await _handle_command(websocket, monitor, message)
    except WebSocketDisconnect:
        logger.debug("Realtime client disconnected")
    finally:
        forwarder.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
            await forwarder
        await broadcaster.unsubscribe(queue)
