import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import WebSocketDisconnect

from monitoring.events import SessionChecked
from monitoring.models import TrafficCondition, TrafficStatus
from realtime import SessionEventBroadcaster, _forward_updates

NOW = datetime(2026, 1, 20, 17, 30, tzinfo=timezone.utc)


def checked(user_id="user123", live=1550.0):
    condition = TrafficCondition(
        free_flow_duration=1500.0,
        live_duration=live,
        distance=21400.0,
        status=TrafficStatus.CALM,
        observed_at=NOW,
        estimated_arrival=NOW + timedelta(seconds=live),
    )
    return SessionChecked(user_id=user_id, condition=condition)


class GoneWebSocket:
    """Client that disconnected before the first update could be sent."""

    def __init__(self):
        self.attempts = 0

    async def send_json(self, message):
        self.attempts += 1
        raise WebSocketDisconnect(code=1006)


@pytest.fixture
def broadcaster():
    return SessionEventBroadcaster()


@pytest.mark.asyncio
async def test_subscribe_unsubscribe(broadcaster):
    queue = await broadcaster.subscribe()
    assert isinstance(queue, asyncio.Queue)
    assert broadcaster.subscriber_count == 1

    await broadcaster.unsubscribe(queue)
    assert broadcaster.subscriber_count == 0


@pytest.mark.asyncio
async def test_publish_fans_out(broadcaster):
    q1 = await broadcaster.subscribe()
    q2 = await broadcaster.subscribe()

    await broadcaster.publish(checked())

    for queue in (q1, q2):
        message = await queue.get()
        assert message["event"] == "traffic_update"
        assert message["data"]["user_id"] == "user123"
        assert message["data"]["condition"]["status"] == "calm"


@pytest.mark.asyncio
async def test_slow_subscriber_skipped(broadcaster, caplog):
    queue = await broadcaster.subscribe(queue_size=1)

    await broadcaster.publish(checked(live=1550))
    await broadcaster.publish(checked(live=1950))

    assert (await queue.get())["data"]["condition"]["live_duration"] == 1550
    assert queue.empty()
    assert "Skipping slow realtime subscriber" in caplog.text


@pytest.mark.asyncio
async def test_forwarder_stops_quietly_when_client_gone():
    queue = asyncio.Queue()
    websocket = GoneWebSocket()
    await queue.put({"event": "traffic_update", "data": {}})

    await asyncio.wait_for(_forward_updates(websocket, queue), timeout=1)

    assert websocket.attempts == 1
