"""
Traffic Check Scheduler

Periodic job that:
1. Finds every active monitoring session
2. Queries the route provider for current → home travel time
3. Classifies and evaluates the new reading against the previous one
4. Records the reading, delivers notifications and publishes SessionChecked

A sweep fires as soon as the scheduler starts, then every check interval.
Each per-session check holds that session's lock for the whole
query → evaluate → record cycle, so forced and scheduled checks for one user
never interleave. A failing session never aborts the sweep.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Set

from common.errors import CommuteWatchError, SessionNotFoundError
from notifications.evaluator import NotificationEvaluator
from notifications.service import NotificationSink
from providers.contracts import RouteProvider
from .events import EventPublisher, SessionChecked
from .models import TrafficCondition
from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class SweepSummary:
    """Counts from one pass over the active sessions."""
    checked: int
    notified: int
    failed: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrafficScheduler:
    """Scheduler for periodic traffic checks and notifications."""

    DEFAULT_CHECK_INTERVAL_SECONDS = 5 * 60

    def __init__(
        self,
        registry: SessionRegistry,
        route_provider: RouteProvider,
        notification_sink: NotificationSink,
        publishers: Iterable[EventPublisher] = (),
        check_interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        provider_timeout_seconds: Optional[float] = None,
        max_concurrent_checks: int = 10,
        inactive_ttl_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize scheduler.

        Args:
            registry: Session registry to sweep
            route_provider: Source of live travel times
            notification_sink: Where notification payloads are delivered
            publishers: Receivers of SessionChecked events
            check_interval_seconds: Time between sweeps
            provider_timeout_seconds: Timeout handed to the route provider
            max_concurrent_checks: Upper bound on overlapping provider calls
            inactive_ttl_seconds: Purge sessions inactive for longer than
                this at each sweep (None keeps them forever)
            clock: Source of observation timestamps
        """
        if check_interval_seconds <= 0:
            raise ValueError("check_interval_seconds must be > 0")
        if max_concurrent_checks < 1:
            raise ValueError("max_concurrent_checks must be >= 1")

        self.registry = registry
        self.route_provider = route_provider
        self.notification_sink = notification_sink
        self.publishers = list(publishers)
        self.check_interval_seconds = check_interval_seconds
        self.provider_timeout_seconds = provider_timeout_seconds
        self.inactive_ttl_seconds = inactive_ttl_seconds
        self.clock = clock

        self._max_concurrent_checks = max_concurrent_checks
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._ticker: Optional[asyncio.Task] = None
        self._sweeps: Set[asyncio.Task] = set()
        self.last_sweep_at: Optional[datetime] = None

    @property
    def state(self) -> SchedulerState:
        if self._ticker is not None and not self._ticker.done():
            return SchedulerState.RUNNING
        return SchedulerState.STOPPED

    def start(self) -> None:
        """Start periodic sweeps. Must be called from a running event loop."""
        if self.state == SchedulerState.RUNNING:
            logger.warning("Traffic scheduler is already running")
            return

        logger.info(
            f"Starting traffic scheduler (checking every {self.check_interval_seconds / 60:g} minutes)"
        )
        self._ticker = asyncio.get_running_loop().create_task(self._tick_forever())

    def stop(self) -> None:
        """
        Stop scheduling future sweeps.

        Sweeps already in progress are not cancelled; they finish and
        record their results.
        """
        if self._ticker is None:
            return
        self._ticker.cancel()
        self._ticker = None
        logger.info("Traffic scheduler stopped")

    def set_check_interval(self, seconds: float) -> None:
        """Change the sweep interval, restarting the ticker if running."""
        if seconds <= 0:
            raise ValueError("check interval must be > 0")
        self.check_interval_seconds = seconds
        if self.state == SchedulerState.RUNNING:
            self.stop()
            self.start()

    async def wait_idle(self) -> None:
        """Wait for all in-flight sweeps to finish."""
        while self._sweeps:
            await asyncio.gather(*list(self._sweeps), return_exceptions=True)

    async def _tick_forever(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            task = loop.create_task(self.run_sweep())
            self._sweeps.add(task)
            task.add_done_callback(self._sweeps.discard)

            next_tick += self.check_interval_seconds
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def run_sweep(self) -> SweepSummary:
        """
        Check every active session once.

        Per-session failures are logged and counted; the session keeps its
        previous reading and is retried at the next sweep.
        """
        self.last_sweep_at = self.clock()
        logger.info(f"Running scheduled traffic check at {self.last_sweep_at.isoformat()}")

        if self.inactive_ttl_seconds:
            await self.registry.purge_inactive(timedelta(seconds=self.inactive_ttl_seconds))

        user_ids = self.registry.active_user_ids()
        results = await asyncio.gather(*(self._guarded_check(user_id) for user_id in user_ids))

        checked = [event for ok, event in results if ok and event is not None]
        summary = SweepSummary(
            checked=len(checked),
            notified=sum(1 for event in checked if event.notification is not None),
            failed=sum(1 for ok, _ in results if not ok),
        )
        logger.info(
            f"Traffic sweep complete: {summary.checked} checked, "
            f"{summary.notified} notified, {summary.failed} failed"
        )
        return summary

    async def check_now(self, user_id: str) -> Optional[SessionChecked]:
        """
        Run a forced check for one user outside the sweep cadence.

        Returns:
            The SessionChecked event, or None if the session is inactive

        Raises:
            SessionNotFoundError: If the user has no session
            ProviderError: If the route provider fails
        """
        self.registry.require(user_id)
        return await self._check_session(user_id)

    async def _guarded_check(self, user_id: str):
        try:
            return True, await self._check_session(user_id)
        except SessionNotFoundError:
            # removed between listing and locking
            return True, None
        except CommuteWatchError as e:
            logger.warning(f"Traffic check failed for user {user_id}: {e}")
            return False, None
        except Exception:
            logger.exception(f"Unexpected error checking traffic for user {user_id}")
            return False, None

    def _limiter(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrent_checks)
        return self._semaphore

    async def _check_session(self, user_id: str) -> Optional[SessionChecked]:
        async with self.registry.session_lock(user_id):
            session = self.registry.require(user_id)
            if not session.active:
                logger.info(f"No active session for user {user_id}, skipping check")
                return None

            async with self._limiter():
                route = await self.route_provider.query(
                    session.current_location,
                    session.home_location,
                    timeout=self.provider_timeout_seconds,
                )

            condition = TrafficCondition.from_route(route, observed_at=self.clock())
            decision = NotificationEvaluator.evaluate(
                session.last_check, condition, session.notification_threshold
            )
            self.registry.record_check(user_id, condition)

            logger.info(
                f"Traffic check for user {user_id}: status={condition.status.value} "
                f"live={condition.live_duration / 60:.0f}min eta={condition.estimated_arrival.isoformat()}"
            )

            if decision.notify:
                try:
                    await self.notification_sink.deliver(user_id, decision.payload)
                except Exception:
                    logger.exception(f"Failed to deliver notification to user {user_id}")

            event = SessionChecked(user_id=user_id, condition=condition, notification=decision.payload)
            await self._publish(event)
            return event

    async def _publish(self, event: SessionChecked) -> None:
        for publisher in self.publishers:
            try:
                await publisher.publish(event)
            except Exception:
                logger.exception(f"Failed to publish check result for user {event.user_id}")
