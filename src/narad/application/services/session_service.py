"""
Session Service

Write path of the session/analytics loop.

Lifecycle:
    login()          -> session:<id> (active, 24h) + user:<id>:active_session
                        + USER_LOGIN event + daily_active_users:<date>
    track_activity() -> refresh session, push to recent activity (max 50)
                        + USER_ACTIVITY event
    logout()         -> session inactive (1h) + drop active pointer
                        + USER_LOGOUT event with sessionDuration (ms)

Failure Policy:
    Cache and broker failures never escape as exceptions: they are logged
    and reported as None/False. The only raised error is SessionNotFoundError
    from logout(), which is a caller mistake rather than a backend fault.

    Writes are sequential and not transactional: a failure halfway through
    login() can leave a session without its login event. Session data is
    reconstructible or may be lost, never half-decoded.

Author: System Architect
Date: 2026-02-14
"""

import uuid
from typing import Any

from narad.application.models import ActivityRecord, LoginMetadata, Session, UserEvent, utc_today
from narad.core import serialization
from narad.core.config.constants import (
    active_session_key,
    daily_active_users_key,
    recent_activity_key,
    session_key,
)
from narad.core.config.settings import Settings
from narad.core.exceptions import NaradError, SerializationError, SessionNotFoundError
from narad.core.logging.logger import get_logger
from narad.infrastructure.cache import RedisClient
from narad.infrastructure.message_queue import KafkaBroker

logger = get_logger(__name__)


class SessionService:
    """
    Usage:
        sessions = SessionService(cache, broker, settings)

        session_id = await sessions.login("u1", LoginMetadata(ip_address="10.0.0.1"))
        await sessions.track_activity("u1", "page_view")
        await sessions.logout(session_id)
    """

    def __init__(self, cache: RedisClient, broker: KafkaBroker, settings: Settings):
        self._cache = cache
        self._broker = broker
        self._settings = settings
        self._topic = settings.USER_EVENTS_TOPIC

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    async def login(
        self, user_id: str, metadata: LoginMetadata | dict[str, Any] | None = None
    ) -> str | None:
        """
        Open a new session for a user; any previous active session pointer is
        overwritten.

        STAGE-SESSION.1

        Returns:
            The new session id, or None if the session could not be stored
        """
        if not isinstance(metadata, LoginMetadata):
            metadata = LoginMetadata.model_validate(metadata or {})

        session_id = f"session_{user_id}_{uuid.uuid4().hex}"
        session = Session(
            session_id=session_id,
            user_id=user_id,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
        )
        ttl = self._settings.SESSION_TTL

        try:
            if not await self._save(session, ttl):
                logger.error("Login failed: session not stored", stage="SESSION.1.ERR", user_id=user_id)
                return None

            await self._cache.set(active_session_key(user_id), session_id, ttl=ttl)
            await self._broker.publish(self._topic, UserEvent.login(user_id, session_id, metadata))
            await self._cache.sadd(daily_active_users_key(utc_today()), user_id)

        except NaradError as e:
            logger.error(
                "Login failed",
                stage="SESSION.1.ERR",
                user_id=user_id,
                error_type=type(e).__name__,
                error=e.message,
            )
            return None

        logger.info("User logged in", stage="SESSION.1", user_id=user_id, session_id=session_id)
        return session_id

    async def logout(self, session_id: str) -> bool:
        """
        Close a session.

        STAGE-SESSION.2

        Returns:
            True when closed; False when the session was already closed or a
            backend step failed

        Raises:
            SessionNotFoundError: The session does not exist or has expired
        """
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(
                f"Session {session_id} not found", details={"session_id": session_id}
            )

        if not session.is_active:
            logger.warning("Logout ignored: session already closed", stage="SESSION.2.SKIP", session_id=session_id)
            return False

        closed = session.closed()
        user_id = closed.user_id

        try:
            if not await self._save(closed, self._settings.SESSION_POST_LOGOUT_TTL):
                logger.error("Logout failed: session not stored", stage="SESSION.2.ERR", session_id=session_id)
                return False

            # A newer login may already own the pointer
            await self._cache.delete_if_equals(active_session_key(user_id), session_id)

            await self._broker.publish(
                self._topic, UserEvent.logout(user_id, session_id, closed.session_duration)
            )

        except NaradError as e:
            logger.error(
                "Logout failed",
                stage="SESSION.2.ERR",
                session_id=session_id,
                error_type=type(e).__name__,
                error=e.message,
            )
            return False

        logger.info(
            "User logged out",
            stage="SESSION.2",
            user_id=user_id,
            session_id=session_id,
            session_duration_ms=closed.session_duration,
        )
        return True

    async def track_activity(self, user_id: str, activity: str) -> bool:
        """
        Record an activity against the user's active session.

        STAGE-SESSION.3

        Returns:
            False when the user has no active session or a backend step failed
        """
        session = await self.get_user_active_session(user_id)
        if session is None or not session.is_active:
            logger.warning("No active session for user", stage="SESSION.3.SKIP", user_id=user_id)
            return False

        touched = session.touched()
        record = ActivityRecord(
            user_id=user_id,
            activity=activity,
            timestamp=touched.last_activity_at.isoformat().replace("+00:00", "Z"),
            session_id=session.session_id,
        )

        try:
            await self._save(touched, self._settings.SESSION_TTL)

            pushed = await self._cache.push_bounded(
                recent_activity_key(user_id),
                serialization.dumps(record),
                max_len=self._settings.RECENT_ACTIVITY_MAX,
                ttl=self._settings.RECENT_ACTIVITY_TTL,
            )
            if not pushed:
                logger.error("Activity not recorded", stage="SESSION.3.ERR", user_id=user_id)
                return False

            await self._broker.publish(
                self._topic, UserEvent.user_activity(user_id, session.session_id, activity)
            )

        except NaradError as e:
            logger.error(
                "Activity tracking failed",
                stage="SESSION.3.ERR",
                user_id=user_id,
                error_type=type(e).__name__,
                error=e.message,
            )
            return False

        logger.debug("Activity tracked", stage="SESSION.3", user_id=user_id, activity=activity)
        return True

    async def invalidate_session(self, session_id: str) -> bool:
        """
        Drop a session immediately, without a logout event.

        Returns:
            True if the delete ran (whether or not the session existed)
        """
        session = await self.get_session(session_id)
        if session is not None:
            await self._cache.delete_if_equals(active_session_key(session.user_id), session_id)

        deleted = await self._cache.delete(session_key(session_id))
        logger.info("Session invalidated", stage="SESSION.4", session_id=session_id, deleted=deleted)
        return deleted

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    async def get_session(self, session_id: str) -> Session | None:
        raw = await self._cache.get(session_key(session_id))
        if raw is None:
            return None

        try:
            return serialization.loads_model(raw, Session)
        except SerializationError as e:
            logger.error(
                "Stored session is unreadable", stage="SESSION.GET.ERR", session_id=session_id, error=e.message
            )
            return None

    async def get_user_active_session(self, user_id: str) -> Session | None:
        session_id = await self._cache.get(active_session_key(user_id))
        if session_id is None:
            return None
        return await self.get_session(session_id)

    async def get_user_recent_activity(self, user_id: str, limit: int = 10) -> list[ActivityRecord]:
        """Most recent first, at most RECENT_ACTIVITY_MAX entries."""
        limit = min(max(limit, 0), self._settings.RECENT_ACTIVITY_MAX)
        if limit == 0:
            return []

        raw_entries = await self._cache.range(recent_activity_key(user_id), 0, limit - 1)

        records = []
        for raw in raw_entries:
            try:
                records.append(serialization.loads_model(raw, ActivityRecord))
            except SerializationError as e:
                logger.warning(
                    "Skipping unreadable activity entry", stage="SESSION.ACT.ERR", user_id=user_id, error=e.message
                )
        return records

    async def _save(self, session: Session, ttl: int) -> bool:
        return await self._cache.set(session_key(session.session_id), serialization.dumps(session), ttl=ttl)
