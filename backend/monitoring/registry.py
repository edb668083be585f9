"""
Session Registry - Owns every monitoring session.

Sessions are kept in memory keyed by user_id. Each user has an asyncio.Lock
that serializes all mutations of that user's session with each other and
with an in-flight traffic check. Callers only ever receive immutable
snapshots; every change goes through a registry method.

A user's lock exists only while some coroutine holds or waits for it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, List, Optional

from common.errors import SessionNotFoundError
from .models import Location, MonitoringSession, TrafficCondition

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory store of monitoring sessions with per-user locking."""

    def __init__(self):
        self._sessions: Dict[str, MonitoringSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def session_lock(self, user_id: str) -> AsyncIterator[None]:
        """
        Hold the mutual-exclusion token for a user's session.

        Holders and waiters are counted; the lock is dropped when the last
        one leaves, so at most one lock ever exists per user.
        """
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[user_id] - 1
            if remaining:
                self._lock_users[user_id] = remaining
            else:
                del self._lock_users[user_id]
                del self._locks[user_id]

    def is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def get(self, user_id: str) -> Optional[MonitoringSession]:
        return self._sessions.get(user_id)

    def require(self, user_id: str) -> MonitoringSession:
        """
        Get a session or fail.

        Raises:
            SessionNotFoundError: If the user has no session
        """
        session = self._sessions.get(user_id)
        if session is None:
            raise SessionNotFoundError(user_id)
        return session

    def active_user_ids(self) -> List[str]:
        return [user_id for user_id, session in self._sessions.items() if session.active]

    def counts(self) -> Dict[str, int]:
        active = len(self.active_user_ids())
        return {"total": len(self._sessions), "active": active, "inactive": len(self._sessions) - active}

    async def create(self, session: MonitoringSession) -> MonitoringSession:
        """
        Store a session, replacing any existing one for the same user.

        The replacement starts a new activation, so any stored reading is
        discarded.
        """
        session = replace(session, active=True, last_check=None, deactivated_at=None)
        async with self.session_lock(session.user_id):
            replaced = session.user_id in self._sessions
            self._sessions[session.user_id] = session
        logger.info(
            f"{'Replaced' if replaced else 'Created'} session for user {session.user_id} "
            f"(threshold {session.notification_threshold}%)"
        )
        return session

    async def set_active(self, user_id: str, active: bool) -> MonitoringSession:
        """
        Activate or deactivate a session. The entry is kept either way.

        Re-activating an inactive session starts a new activation and clears
        its stored reading.

        Raises:
            SessionNotFoundError: If the user has no session
        """
        self.require(user_id)
        async with self.session_lock(user_id):
            session = self.require(user_id)
            if session.active == active:
                return session
            if active:
                session = replace(session, active=True, last_check=None, deactivated_at=None)
            else:
                session = replace(session, active=False, deactivated_at=datetime.now(timezone.utc))
            self._sessions[user_id] = session
        logger.info(f"Session for user {user_id} {'activated' if active else 'deactivated'}")
        return session

    async def update_current_location(self, user_id: str, location: Location) -> bool:
        """
        Move a session's origin.

        Returns:
            True if updated; False (with a warning) when the session is
            missing or inactive
        """
        if user_id not in self._sessions:
            logger.warning(f"Ignoring location update for user {user_id}: no session")
            return False
        async with self.session_lock(user_id):
            session = self._sessions.get(user_id)
            if session is None or not session.active:
                logger.warning(
                    f"Ignoring location update for user {user_id}: "
                    f"{'no session' if session is None else 'session inactive'}"
                )
                return False
            self._sessions[user_id] = replace(session, current_location=location)
        logger.debug(f"Updated location for user {user_id}: ({location.latitude}, {location.longitude})")
        return True

    async def update_settings(
        self,
        user_id: str,
        home_location: Optional[Location] = None,
        notification_threshold: Optional[float] = None,
    ) -> MonitoringSession:
        """
        Change a session's home and/or notification threshold.

        A new home location invalidates the stored reading, since it was
        measured for a different route.

        Raises:
            SessionNotFoundError: If the user has no session
            ValidationError: If the threshold is not positive
        """
        self.require(user_id)
        async with self.session_lock(user_id):
            session = self.require(user_id)
            changes = {}
            if notification_threshold is not None:
                changes["notification_threshold"] = notification_threshold
            if home_location is not None and home_location != session.home_location:
                changes["home_location"] = home_location
                changes["last_check"] = None
            if changes:
                session = replace(session, **changes)
                self._sessions[user_id] = session
        return session

    def record_check(self, user_id: str, condition: TrafficCondition) -> MonitoringSession:
        """
        Store the latest reading for a session.

        Must be called while holding session_lock(user_id), so the
        read-evaluate-write cycle of a check is never interleaved with
        another one.

        Raises:
            RuntimeError: If the caller does not hold the session lock
            SessionNotFoundError: If the user has no session
        """
        if not self.is_locked(user_id):
            raise RuntimeError(f"record_check for {user_id} requires the session lock")
        session = replace(self.require(user_id), last_check=condition)
        self._sessions[user_id] = session
        return session

    async def purge_inactive(self, older_than: timedelta) -> List[str]:
        """
        Remove sessions that have been inactive for longer than older_than.

        Returns:
            The user_ids that were removed
        """
        cutoff = datetime.now(timezone.utc) - older_than
        candidates = [
            user_id
            for user_id, session in self._sessions.items()
            if not session.active and session.deactivated_at and session.deactivated_at <= cutoff
        ]

        purged = []
        for user_id in candidates:
            async with self.session_lock(user_id):
                session = self._sessions.get(user_id)
                # the session may have been re-created while we waited
                if session is None or session.active or session.deactivated_at > cutoff:
                    continue
                del self._sessions[user_id]
            purged.append(user_id)

        if purged:
            logger.info(f"Purged {len(purged)} inactive sessions")
        return purged
