"""
Unit Tests for the Session Service

Runs the write path against the in-memory Redis stub and a recording broker.
"""

import pytest

from narad.application.models import LoginMetadata, utc_today
from narad.application.services import SessionService
from narad.core import serialization
from narad.core.exceptions import BrokerConnectionError, SessionNotFoundError


@pytest.fixture
def sessions(cache, mock_broker, dev_settings):
    return SessionService(cache, mock_broker, dev_settings)


def published_types(broker):
    return [message.type for _topic, message in broker.published]


@pytest.mark.unit
class TestLogin:
    @pytest.mark.asyncio
    async def test_login_writes_session_and_publishes(self, sessions, cache, mock_broker):
        session_id = await sessions.login("u1", LoginMetadata(ip_address="10.0.0.1", user_agent="curl"))

        assert session_id.startswith("session_u1_")

        session = await sessions.get_session(session_id)
        assert session.user_id == "u1"
        assert session.is_active is True
        assert session.ip_address == "10.0.0.1"
        assert await cache.ttl(f"session:{session_id}") == 86400

        assert await cache.get("user:u1:active_session") == session_id
        assert await cache.scard(f"daily_active_users:{utc_today()}") == 1

        topic, event = mock_broker.published[0]
        assert topic == "user.events"
        assert event.type == "USER_LOGIN"
        assert event.metadata.user_agent == "curl"

    @pytest.mark.asyncio
    async def test_login_accepts_wire_metadata(self, sessions):
        session_id = await sessions.login("u1", {"ipAddress": "10.0.0.2"})

        assert (await sessions.get_session(session_id)).ip_address == "10.0.0.2"

    @pytest.mark.asyncio
    async def test_relogin_replaces_active_session(self, sessions):
        first = await sessions.login("u1")
        second = await sessions.login("u1")

        assert first != second
        assert (await sessions.get_user_active_session("u1")).session_id == second

    @pytest.mark.asyncio
    async def test_login_with_degraded_cache_returns_none(self, degraded_cache, mock_broker, dev_settings):
        sessions = SessionService(degraded_cache, mock_broker, dev_settings)

        assert await sessions.login("u1") is None
        assert mock_broker.published == []

    @pytest.mark.asyncio
    async def test_login_publish_failure_returns_none(self, sessions, mock_broker):
        mock_broker.publish.side_effect = BrokerConnectionError("Kafka producer not connected")

        assert await sessions.login("u1") is None


@pytest.mark.unit
class TestLogout:
    @pytest.mark.asyncio
    async def test_login_logout_round_trip(self, sessions, cache, mock_broker):
        session_id = await sessions.login("u1")

        assert await sessions.logout(session_id) is True

        session = await sessions.get_session(session_id)
        assert session.is_active is False
        assert session.logout_at is not None
        assert session.session_duration >= 0
        assert await cache.ttl(f"session:{session_id}") == 3600
        assert await sessions.get_user_active_session("u1") is None

        assert published_types(mock_broker) == ["USER_LOGIN", "USER_LOGOUT"]
        assert mock_broker.published[-1][1].session_duration == session.session_duration

    @pytest.mark.asyncio
    async def test_unknown_session_raises(self, sessions):
        with pytest.raises(SessionNotFoundError):
            await sessions.logout("session_nobody_0")

    @pytest.mark.asyncio
    async def test_expired_session_raises(self, sessions, in_memory_redis):
        session_id = await sessions.login("u1")
        in_memory_redis.advance_time(86401)

        with pytest.raises(SessionNotFoundError):
            await sessions.logout(session_id)

    @pytest.mark.asyncio
    async def test_second_logout_leaves_closed_session_untouched(self, sessions, mock_broker, in_memory_redis):
        session_id = await sessions.login("u1")
        await sessions.logout(session_id)
        closed = await sessions.get_session(session_id)
        in_memory_redis.advance_time(600)

        assert await sessions.logout(session_id) is False

        assert await sessions.get_session(session_id) == closed
        assert await in_memory_redis.ttl(f"session:{session_id}") == 3000
        assert published_types(mock_broker) == ["USER_LOGIN", "USER_LOGOUT"]

    @pytest.mark.asyncio
    async def test_logout_of_old_session_keeps_new_pointer(self, sessions, cache):
        old = await sessions.login("u1")
        new = await sessions.login("u1")

        await sessions.logout(old)

        assert await cache.get("user:u1:active_session") == new

    @pytest.mark.asyncio
    async def test_corrupted_session_is_treated_as_missing(self, sessions, cache):
        await cache.set("session:broken", "{not json")

        assert await sessions.get_session("broken") is None
        with pytest.raises(SessionNotFoundError):
            await sessions.logout("broken")


@pytest.mark.unit
class TestActivity:
    @pytest.mark.asyncio
    async def test_activity_requires_active_session(self, sessions, mock_broker):
        assert await sessions.track_activity("ghost", "click") is False
        assert mock_broker.published == []

    @pytest.mark.asyncio
    async def test_track_activity(self, sessions, cache, mock_broker, in_memory_redis):
        session_id = await sessions.login("u1")
        in_memory_redis.advance_time(100)

        assert await sessions.track_activity("u1", "page_view") is True

        assert await cache.ttl(f"session:{session_id}") == 86400
        records = await sessions.get_user_recent_activity("u1")
        assert [(r.activity, r.session_id) for r in records] == [("page_view", session_id)]
        assert await cache.ttl("user:u1:recent_activity") == 86400

        event = mock_broker.published[-1][1]
        assert (event.type, event.activity, event.session_id) == ("USER_ACTIVITY", "page_view", session_id)

    @pytest.mark.asyncio
    async def test_recent_activity_is_bounded_and_most_recent_first(self, sessions):
        await sessions.login("u1")
        for i in range(60):
            await sessions.track_activity("u1", f"a{i}")

        everything = await sessions.get_user_recent_activity("u1", limit=100)
        assert len(everything) == 50
        assert everything[0].activity == "a59"
        assert everything[-1].activity == "a10"

        latest = await sessions.get_user_recent_activity("u1")
        assert [r.activity for r in latest] == [f"a{i}" for i in range(59, 49, -1)]

    @pytest.mark.asyncio
    async def test_unreadable_entries_are_skipped(self, sessions, cache):
        await sessions.login("u1")
        await sessions.track_activity("u1", "click")
        await cache.push("user:u1:recent_activity", "garbage")

        records = await sessions.get_user_recent_activity("u1")

        assert [r.activity for r in records] == ["click"]

    @pytest.mark.asyncio
    async def test_activity_after_logout_is_rejected(self, sessions):
        session_id = await sessions.login("u1")
        await sessions.logout(session_id)

        assert await sessions.track_activity("u1", "click") is False


@pytest.mark.unit
class TestInvalidate:
    @pytest.mark.asyncio
    async def test_invalidate_removes_session_and_pointer(self, sessions, cache, mock_broker):
        session_id = await sessions.login("u1")

        assert await sessions.invalidate_session(session_id) is True

        assert await sessions.get_session(session_id) is None
        assert await cache.get("user:u1:active_session") is None
        assert published_types(mock_broker) == ["USER_LOGIN"]

    @pytest.mark.asyncio
    async def test_activity_record_round_trips(self, sessions, cache):
        await sessions.login("u1")
        await sessions.track_activity("u1", "click")

        raw = (await cache.range("user:u1:recent_activity"))[0]
        assert set(serialization.loads(raw)) == {"userId", "activity", "timestamp", "sessionId"}
