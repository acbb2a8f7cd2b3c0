"""
Analytics Service

Consumer side of the session/analytics loop: folds user events into
aggregates kept in the cache.

    USER_LOGIN    -> login_count:<date> += 1
                     user:<id>:login_stats  lastLogin, totalLogins += 1
    USER_LOGOUT   -> user:<id>:login_stats  completedSessions += 1,
                     avgSessionTime = running mean of sessionDuration (ms)
    USER_ACTIVITY -> activity_count:<date>:<activity> += 1

Events are delivered at least once by the broker and are not deduplicated,
so a redelivered event is counted again.
"""

from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from narad.application.models import LoginStats, SystemStats, UserEvent, utc_now, utc_today
from narad.core.config.constants import (
    EventType,
    activity_count_key,
    daily_active_users_key,
    login_count_key,
    login_stats_key,
)
from narad.core.config.settings import Settings
from narad.core.logging.logger import get_logger
from narad.infrastructure.cache import RedisClient
from narad.infrastructure.message_queue import KafkaBroker, MessageContext

logger = get_logger(__name__)


class AnalyticsService:
    def __init__(self, cache: RedisClient, broker: KafkaBroker, settings: Settings):
        self._cache = cache
        self._broker = broker
        self._settings = settings
        self._handlers = {
            EventType.USER_LOGIN.value: self.process_login,
            EventType.USER_LOGOUT.value: self.process_logout,
            EventType.USER_ACTIVITY.value: self.process_activity,
        }

    async def start(self) -> None:
        """
        Subscribe to the user events topic.

        Raises:
            BrokerConnectionError: Consumer unusable in production mode
        """
        await self._broker.subscribe(self._settings.USER_EVENTS_TOPIC, self.handle_user_event)
        logger.info("Analytics consumer started", stage="ANALYTICS.START", topic=self._settings.USER_EVENTS_TOPIC)

    async def handle_user_event(self, event: Any, context: MessageContext | None = None) -> None:
        """
        Dispatch one delivered event. Never raises.

        STAGE-ANALYTICS.1
        """
        if not isinstance(event, dict):
            logger.warning(
                "Ignoring non-object event", stage="ANALYTICS.1.SKIP", payload_type=type(event).__name__
            )
            return

        handler = self._handlers.get(event.get("type"))
        if handler is None:
            logger.info("Unknown event type", stage="ANALYTICS.1.SKIP", event_type=event.get("type"))
            return

        try:
            parsed = UserEvent.model_validate(event)
            if not parsed.user_id:
                logger.warning("Event without userId", stage="ANALYTICS.1.SKIP", event_type=parsed.type)
                return

            logger.debug(
                "Processing user event",
                stage="ANALYTICS.1",
                event_type=parsed.type,
                user_id=parsed.user_id,
                partition=context.partition if context else None,
                offset=context.offset if context else None,
            )
            await handler(parsed)

        except ValidationError as e:
            logger.warning(
                "Ignoring malformed event",
                stage="ANALYTICS.1.ERR",
                event_type=event.get("type"),
                errors=e.error_count(),
            )
        except Exception as e:
            logger.error(
                "Error processing user event",
                stage="ANALYTICS.1.ERR",
                event_type=event.get("type"),
                error=str(e),
                exc_info=True,
            )

    # -------------------------------------------------------------------------
    # Event processors
    # -------------------------------------------------------------------------

    async def process_login(self, event: UserEvent) -> None:
        date = event.timestamp.strftime("%Y-%m-%d")
        stats_key = login_stats_key(event.user_id)

        await self._cache.incr(login_count_key(date))
        await self._cache.hset(stats_key, "lastLogin", event.timestamp.isoformat().replace("+00:00", "Z"))
        total = await self._cache.hincrby(stats_key, "totalLogins", 1)

        logger.debug("Login stats updated", stage="ANALYTICS.LOGIN", user_id=event.user_id, total_logins=total)

    async def process_logout(self, event: UserEvent) -> None:
        """
        Fold sessionDuration into the running mean:

            avg_n = avg_{n-1} + (duration - avg_{n-1}) / n
        """
        if event.session_duration is None:
            logger.warning("Logout event without sessionDuration", stage="ANALYTICS.LOGOUT.SKIP", user_id=event.user_id)
            return

        stats_key = login_stats_key(event.user_id)
        current = LoginStats.from_hash(await self._cache.hgetall(stats_key))

        completed = await self._cache.hincrby(stats_key, "completedSessions", 1)
        if completed is None:
            return

        previous_avg = current.avg_session_time if completed > 1 else 0
        new_avg = round(previous_avg + (event.session_duration - previous_avg) / completed)
        await self._cache.hset(stats_key, "avgSessionTime", str(new_avg))

        logger.debug(
            "Session stats updated",
            stage="ANALYTICS.LOGOUT",
            user_id=event.user_id,
            completed_sessions=completed,
            avg_session_time_ms=new_avg,
        )

    async def process_activity(self, event: UserEvent) -> None:
        if not event.activity:
            logger.warning("Activity event without activity", stage="ANALYTICS.ACTIVITY.SKIP", user_id=event.user_id)
            return

        date = event.timestamp.strftime("%Y-%m-%d")
        await self._cache.incr(activity_count_key(date, event.activity))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_system_stats(self, date: str | None = None) -> SystemStats | None:
        """
        Daily active users and logins for a date (default: today, UTC).

        Returns:
            None when the cache is unavailable
        """
        if not self._cache.is_available:
            logger.warning("System stats unavailable: cache not connected", stage="ANALYTICS.STATS")
            return None

        date = date or utc_today()
        active_users = await self._cache.scard(daily_active_users_key(date))
        total_logins = await self._cache.get(login_count_key(date))

        return SystemStats(
            date=date,
            active_users=active_users,
            total_logins=int(total_logins) if total_logins else 0,
        )

    async def get_login_stats(self, user_id: str) -> dict[str, Any]:
        stats = LoginStats.from_hash(await self._cache.hgetall(login_stats_key(user_id)))
        return stats.model_dump(by_alias=True)

    async def get_activity_count(self, activity: str, date: str | None = None) -> int:
        raw = await self._cache.get(activity_count_key(date or utc_today(), activity))
        return int(raw) if raw else 0

    async def cleanup_old_data(self, retention_days: int | None = None) -> str | None:
        """
        Delete the daily keys of the day that just fell out of retention.

        Meant to run once a day; days skipped by a missed run are left to
        their owner's TTL policy.

        Returns:
            The cutoff date cleaned, or None if the cache is unavailable
        """
        retention_days = self._settings.STATS_RETENTION_DAYS if retention_days is None else retention_days

        if not self._cache.is_available:
            logger.warning("Cleanup skipped: cache not connected", stage="ANALYTICS.CLEANUP")
            return None

        cutoff = (utc_now() - timedelta(days=retention_days)).strftime("%Y-%m-%d")
        await self._cache.delete(daily_active_users_key(cutoff), login_count_key(cutoff))

        logger.info("Cleaned up daily stats", stage="ANALYTICS.CLEANUP", cutoff=cutoff)
        return cutoff
