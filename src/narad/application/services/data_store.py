"""
Cache-Backed Data Stores

Small stores built directly on the cache facade:

    ResponseCache     api:<endpoint>              JSON document, TTL (default 5 min)
    UserPreferences   user:<id>:prefs             hash of preference -> value
    RoomHistory       websocket:<room>:messages   bounded list, most recent first

All of them inherit the facade's degraded behaviour: while the cache is not
connected reads come back empty and writes report False.
"""

from datetime import datetime, timezone
from typing import Any

from narad.core import serialization
from narad.core.config.constants import (
    API_RESPONSE_TTL_SECONDS,
    ROOM_HISTORY_MAX_ENTRIES,
    api_response_key,
    room_messages_key,
    user_preferences_key,
)
from narad.core.exceptions import SerializationError
from narad.core.logging.logger import get_logger
from narad.infrastructure.cache import RedisClient

logger = get_logger(__name__)


class ResponseCache:
    """Caches rendered API responses per endpoint."""

    def __init__(self, cache: RedisClient, ttl: int = API_RESPONSE_TTL_SECONDS):
        self._cache = cache
        self._ttl = ttl

    async def put(self, endpoint: str, data: Any, ttl: int | None = None) -> bool:
        """
        Raises:
            SerializationError: If data cannot be encoded
        """
        ttl = self._ttl if ttl is None else ttl
        return await self._cache.set(api_response_key(endpoint), serialization.dumps(data), ttl=ttl)

    async def get(self, endpoint: str) -> Any | None:
        """Cached response, or None on a miss or an unreadable entry."""
        raw = await self._cache.get(api_response_key(endpoint))
        if raw is None:
            return None
        try:
            return serialization.loads(raw)
        except SerializationError as e:
            logger.warning("Discarding unreadable cached response", stage="STORE.API", endpoint=endpoint, error=e.message)
            return None

    async def invalidate(self, endpoint: str) -> bool:
        return await self._cache.delete(api_response_key(endpoint))


class UserPreferences:
    def __init__(self, cache: RedisClient):
        self._cache = cache

    async def set(self, user_id: str, preference: str, value: str) -> bool:
        return await self._cache.hset(user_preferences_key(user_id), preference, value)

    async def get(self, user_id: str, preference: str) -> str | None:
        return await self._cache.hget(user_preferences_key(user_id), preference)

    async def get_all(self, user_id: str) -> dict[str, str]:
        return await self._cache.hgetall(user_preferences_key(user_id))


class RoomHistory:
    """
    Recent realtime messages per room.

    Each stored message gets a `timestamp`; only the newest `max_len`
    messages are kept.
    """

    def __init__(self, cache: RedisClient, max_len: int = ROOM_HISTORY_MAX_ENTRIES):
        self._cache = cache
        self._max_len = max_len

    async def append(self, room_id: str, message: dict[str, Any]) -> bool:
        """
        Raises:
            SerializationError: If the message cannot be encoded
        """
        entry = {**message, "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}
        return await self._cache.push_bounded(
            room_messages_key(room_id), serialization.dumps(entry), max_len=self._max_len
        )

    async def recent(self, room_id: str, count: int = 10) -> list[dict[str, Any]]:
        """Newest first; unreadable entries are skipped."""
        if count <= 0:
            return []
        raw_entries = await self._cache.range(room_messages_key(room_id), 0, count - 1)

        messages = []
        for raw in raw_entries:
            try:
                messages.append(serialization.loads(raw))
            except SerializationError:
                logger.warning("Skipping unreadable room message", stage="STORE.ROOM", room_id=room_id)
        return messages
