"""
Unit Tests for the Cache-Backed Data Stores

Response cache, user preferences and room history against the in-memory
Redis stub, plus their behaviour on a degraded cache.
"""

import pytest

from narad.application.services import ResponseCache, RoomHistory, UserPreferences


@pytest.mark.unit
class TestResponseCache:
    @pytest.mark.asyncio
    async def test_put_and_get(self, cache, in_memory_redis):
        responses = ResponseCache(cache)

        assert await responses.put("user-profile", {"id": "u1", "name": "Example User"}) is True

        assert await responses.get("user-profile") == {"id": "u1", "name": "Example User"}
        assert await in_memory_redis.ttl("api:user-profile") == 300

    @pytest.mark.asyncio
    async def test_entry_expires(self, cache, in_memory_redis):
        responses = ResponseCache(cache, ttl=10)
        await responses.put("feed", [1, 2, 3])

        in_memory_redis.advance_time(11)

        assert await responses.get("feed") is None

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_a_miss(self, cache):
        await cache.set("api:feed", "{truncated")

        assert await ResponseCache(cache).get("feed") is None

    @pytest.mark.asyncio
    async def test_invalidate(self, cache):
        responses = ResponseCache(cache)
        await responses.put("feed", {"n": 1})

        await responses.invalidate("feed")

        assert await responses.get("feed") is None


@pytest.mark.unit
class TestUserPreferences:
    @pytest.mark.asyncio
    async def test_set_get_and_get_all(self, cache):
        prefs = UserPreferences(cache)

        await prefs.set("u1", "theme", "dark")
        await prefs.set("u1", "lang", "en")

        assert await prefs.get("u1", "theme") == "dark"
        assert await prefs.get("u1", "missing") is None
        assert await prefs.get_all("u1") == {"theme": "dark", "lang": "en"}
        assert await prefs.get_all("u2") == {}


@pytest.mark.unit
class TestRoomHistory:
    @pytest.mark.asyncio
    async def test_recent_is_newest_first_and_bounded(self, cache):
        history = RoomHistory(cache, max_len=3)
        for n in range(5):
            await history.append("lobby", {"text": f"m{n}"})

        messages = await history.recent("lobby", count=10)

        assert [m["text"] for m in messages] == ["m4", "m3", "m2"]
        assert all(m["timestamp"].endswith("Z") for m in messages)

    @pytest.mark.asyncio
    async def test_recent_honours_count(self, cache):
        history = RoomHistory(cache)
        for n in range(4):
            await history.append("lobby", {"text": f"m{n}"})

        assert [m["text"] for m in await history.recent("lobby", count=2)] == ["m3", "m2"]
        assert await history.recent("lobby", count=0) == []


@pytest.mark.unit
class TestDegradedStores:
    @pytest.mark.asyncio
    async def test_reads_empty_and_writes_fail(self, degraded_cache):
        assert await ResponseCache(degraded_cache).put("feed", {"n": 1}) is False
        assert await ResponseCache(degraded_cache).get("feed") is None
        assert await UserPreferences(degraded_cache).set("u1", "theme", "dark") is False
        assert await UserPreferences(degraded_cache).get_all("u1") == {}
        assert await RoomHistory(degraded_cache).append("lobby", {"text": "hi"}) is False
        assert await RoomHistory(degraded_cache).recent("lobby") == []
