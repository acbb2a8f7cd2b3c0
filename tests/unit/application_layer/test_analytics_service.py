"""
Unit Tests for the Analytics Service

Feeds events captured from the session write path back into the consumer,
closing the event-sourcing loop without a broker.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from narad.application.models import utc_now, utc_today
from narad.application.services import AnalyticsService, SessionService
from narad.infrastructure.message_queue import MessageContext


@pytest.fixture
def analytics(cache, mock_broker, dev_settings):
    return AnalyticsService(cache, mock_broker, dev_settings)


@pytest.fixture
def sessions(cache, mock_broker, dev_settings):
    return SessionService(cache, mock_broker, dev_settings)


async def replay(broker, analytics):
    """Deliver everything published so far, as the consumer would see it."""
    for offset, (topic, event) in enumerate(broker.published):
        await analytics.handle_user_event(event.to_message(), MessageContext(topic, 0, offset))


def logout_event(user_id, duration):
    return {"type": "USER_LOGOUT", "userId": user_id, "sessionId": "s", "sessionDuration": duration}


@pytest.mark.unit
class TestStart:
    @pytest.mark.asyncio
    async def test_subscribes_to_user_events(self, analytics, mock_broker):
        await analytics.start()

        mock_broker.subscribe.assert_awaited_once_with("user.events", analytics.handle_user_event)


@pytest.mark.unit
class TestEventLoop:
    @pytest.mark.asyncio
    async def test_login_activity_logout_aggregates(self, sessions, analytics, mock_broker):
        session_id = await sessions.login("u1")
        await sessions.track_activity("u1", "click")
        await sessions.track_activity("u1", "click")
        await sessions.logout(session_id)

        await replay(mock_broker, analytics)

        stats = await analytics.get_system_stats()
        assert (stats.date, stats.active_users, stats.total_logins) == (utc_today(), 1, 1)
        assert await analytics.get_activity_count("click") == 2

        login_stats = await analytics.get_login_stats("u1")
        assert login_stats["totalLogins"] == 1
        assert login_stats["completedSessions"] == 1
        assert login_stats["lastLogin"].endswith("Z")

    @pytest.mark.asyncio
    async def test_running_mean_of_session_duration(self, analytics):
        for duration, expected in ((1000, 1000), (3000, 2000), (2000, 2000), (6000, 3000)):
            await analytics.handle_user_event(logout_event("u1", duration))
            assert (await analytics.get_login_stats("u1"))["avgSessionTime"] == expected

        assert (await analytics.get_login_stats("u1"))["completedSessions"] == 4

    @pytest.mark.asyncio
    async def test_logins_do_not_skew_the_mean(self, analytics):
        for _ in range(3):
            await analytics.handle_user_event({"type": "USER_LOGIN", "userId": "u1"})
        await analytics.handle_user_event(logout_event("u1", 4000))

        stats = await analytics.get_login_stats("u1")
        assert stats["totalLogins"] == 3
        assert stats["avgSessionTime"] == 4000


@pytest.mark.unit
class TestIgnoredEvents:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            "plain text",
            ["USER_LOGIN"],
            {"type": "USER_RENAMED", "userId": "u1"},
            {"type": "USER_LOGIN"},
            {"type": "USER_LOGOUT", "userId": "u1"},
            {"type": "USER_LOGOUT", "userId": "u1", "sessionDuration": -5},
            {"type": "USER_ACTIVITY", "userId": "u1"},
        ],
    )
    async def test_payload_is_ignored(self, analytics, in_memory_redis, payload):
        await analytics.handle_user_event(payload)

        assert in_memory_redis.data == {}

    @pytest.mark.asyncio
    async def test_handler_errors_are_contained(self, mock_broker, dev_settings):
        cache = AsyncMock()
        cache.incr.side_effect = RuntimeError("unexpected")
        analytics = AnalyticsService(cache, mock_broker, dev_settings)

        await analytics.handle_user_event({"type": "USER_ACTIVITY", "userId": "u1", "activity": "click"})


@pytest.mark.unit
class TestQueriesAndCleanup:
    @pytest.mark.asyncio
    async def test_stats_for_empty_day(self, analytics):
        stats = await analytics.get_system_stats("2020-01-01")
        assert (stats.active_users, stats.total_logins) == (0, 0)

    @pytest.mark.asyncio
    async def test_stats_unavailable_when_degraded(self, degraded_cache, mock_broker, dev_settings):
        analytics = AnalyticsService(degraded_cache, mock_broker, dev_settings)

        assert await analytics.get_system_stats() is None
        assert await analytics.cleanup_old_data() is None

    @pytest.mark.asyncio
    async def test_cleanup_removes_cutoff_day(self, analytics, cache):
        cutoff = (utc_now() - timedelta(days=30)).strftime("%Y-%m-%d")
        await cache.sadd(f"daily_active_users:{cutoff}", "u1")
        await cache.incr(f"login_count:{cutoff}")
        await cache.incr(f"login_count:{utc_today()}")

        assert await analytics.cleanup_old_data() == cutoff

        assert await cache.exists(f"daily_active_users:{cutoff}") is False
        assert await cache.exists(f"login_count:{cutoff}") is False
        assert await cache.exists(f"login_count:{utc_today()}") is True

    @pytest.mark.asyncio
    async def test_cleanup_custom_retention(self, analytics):
        cutoff = await analytics.cleanup_old_data(retention_days=7)
        assert cutoff == (utc_now() - timedelta(days=7)).strftime("%Y-%m-%d")

    @pytest.mark.asyncio
    async def test_zero_retention_cleans_today(self, analytics):
        assert await analytics.cleanup_old_data(retention_days=0) == utc_today()
