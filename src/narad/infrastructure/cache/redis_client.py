"""
Redis Cache Facade

Architecture:
    RedisClient (Public API)
        ├── RedisConnectionManager (Connection lifecycle + ConnectionState)
        ├── degradable operations (state check + error mapping per command)
        └── HealthMonitor (Health contract: connected | disconnected | error)

Degraded-Mode Contract:
    Every operation checks the connection state first. When the cache is not
    CONNECTED, or the command fails, the operation logs and returns its
    empty/failure sentinel instead of raising:

        reads   -> None / {} / [] / 0 / False
        writes  -> False (or None where the success value is a number)

    Callers therefore stay straight-line during partial failure.

Values:
    All values are opaque strings. Structured data is encoded by the caller
    (narad.core.serialization) before set() and decoded after get().

Author: System Architect
Date: 2026-02-12
"""

import asyncio
import functools
import time
from collections.abc import Callable
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from narad.core.config.constants import Backend, ConnectionState
from narad.core.config.settings import Settings
from narad.core.exceptions import CacheConnectionError, OperationSkippedError
from narad.core.logging.logger import get_logger
from narad.infrastructure.connection import BaseConnectionManager

logger = get_logger(__name__)


# Deletes KEYS[1] only when it still holds ARGV[1]
COMPARE_AND_DELETE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

# Increments KEYS[1]; the first increment of a window (or a counter that lost
# its TTL) sets the expiry to ARGV[1] seconds. Returns {count, ttl}.
INCR_WINDOW_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
local ttl = redis.call('TTL', KEYS[1])
if count == 1 or ttl < 0 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class RedisConnectionManager(BaseConnectionManager[redis.Redis]):
    """
    Manages the Redis client lifecycle.

    One client (with its internal connection pool) is shared by every
    concurrent caller; only this manager creates or releases it.

    Connect Sequence:
    1. Build client (host/port/db/password/TLS, decode_responses=True)
    2. initialize() + PING, each bounded by the profile timeout
    3. Retry per profile, then CONNECTED / DEGRADED / raise
    """

    backend = Backend.CACHE
    error_cls = CacheConnectionError
    retry_on = (RedisError, OSError, asyncio.TimeoutError)

    def __init__(self, settings: Settings):
        self._settings = settings
        super().__init__(
            profile=settings.connection_profile(Backend.CACHE),
            target=f"{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
        )

    def _create_client(self) -> redis.Redis:
        return redis.Redis(
            host=self._settings.REDIS_HOST,
            port=self._settings.REDIS_PORT,
            db=self._settings.REDIS_DB,
            password=self._settings.REDIS_PASSWORD,
            ssl=self._settings.REDIS_TLS,
            socket_connect_timeout=self._profile.timeout,
            decode_responses=True,  # Return strings instead of bytes
        )

    async def _open(self, client: redis.Redis) -> None:
        await client.initialize()

    async def _probe(self, client: redis.Redis) -> None:
        await client.ping()

    async def _close(self, client: redis.Redis) -> None:
        await client.aclose()


# =============================================================================
# LAYER 2: DEGRADABLE OPERATIONS
# =============================================================================


def degradable(fallback: Callable[[], Any], stage: str):
    """
    Wrap a cache operation with the degraded-mode contract.

    - Raises OperationSkippedError internally when not CONNECTED, mapped to
      the fallback value
    - RedisError during the command is logged and mapped to the fallback

    Args:
        fallback: Factory for the empty/failure sentinel
        stage: Stage tag for logs (e.g. "CACHE.GET")
    """

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self: "RedisClient", *args, **kwargs):
            try:
                self._ensure_available(fn.__name__)
                return await fn(self, *args, **kwargs)
            except OperationSkippedError as e:
                logger.debug(
                    "Cache operation skipped",
                    stage=stage,
                    operation=fn.__name__,
                    state=e.details.get("state"),
                )
                return fallback()
            except RedisError as e:
                logger.error(
                    "Cache operation failed",
                    stage=stage,
                    operation=fn.__name__,
                    key=args[0] if args else None,
                    error=str(e),
                )
                return fallback()

        return wrapper

    return decorator


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Produces the cache health contract.

    Returns:
        {"status": "connected", "latency_ms": 0.42, "host": ..., "port": ...}
        {"status": "disconnected", "error": "..."}
        {"status": "error", "error": "..."}
    """

    def __init__(self, connection_manager: RedisConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        STAGE-CACHE.HEALTH: Redis health check
        """
        client = self._conn_mgr.client
        if not self._conn_mgr.is_available or client is None:
            return {
                "status": "disconnected",
                "state": self._conn_mgr.state.value,
                "error": self._conn_mgr.last_error or "Redis client not connected",
            }

        try:
            start = time.perf_counter()
            await client.ping()
            latency = (time.perf_counter() - start) * 1000
        except (RedisError, OSError) as e:
            return {"status": "error", "error": str(e)}

        return {
            "status": "connected",
            "latency_ms": round(latency, 2),
            "host": self._settings.REDIS_HOST,
            "port": self._settings.REDIS_PORT,
        }


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Cache facade over a single shared Redis connection.

    Usage:
        cache = RedisClient(settings)
        await cache.connect()

        await cache.set("key", "value", ttl=3600)
        value = await cache.get("key")

        await cache.push_bounded("user:u1:recent_activity", payload, max_len=50)
        recent = await cache.range("user:u1:recent_activity", 0, 9)

        await cache.disconnect()
    """

    def __init__(self, settings: Settings):
        """
        STAGE-CACHE.1: Client initialization
        """
        self._settings = settings
        self._conn_mgr = RedisConnectionManager(settings)
        self._health_monitor = HealthMonitor(self._conn_mgr, settings)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Establish the Redis connection.

        Raises:
            CacheConnectionError: Connection failed in production mode
        """
        await self._conn_mgr.connect()

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()

    @property
    def state(self) -> ConnectionState:
        return self._conn_mgr.state

    @property
    def is_available(self) -> bool:
        return self._conn_mgr.is_available

    @property
    def connection(self) -> RedisConnectionManager:
        return self._conn_mgr

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()

    def _ensure_available(self, operation: str) -> None:
        if not self._conn_mgr.is_available:
            raise OperationSkippedError(
                f"Cache {operation} skipped: backend not connected",
                details={"operation": operation, "state": self._conn_mgr.state.value},
            )

    @property
    def _redis(self) -> redis.Redis:
        return self._conn_mgr.client

    # -------------------------------------------------------------------------
    # String Operations
    # -------------------------------------------------------------------------

    @degradable(lambda: None, "CACHE.GET")
    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    @degradable(lambda: False, "CACHE.SET")
    async def set(self, key: str, value: str, ttl: int | None = None, nx: bool = False) -> bool:
        """
        Set a value, optionally with TTL (seconds) and only-if-absent.

        Returns:
            True if written; False if skipped, failed, or nx and key exists
        """
        result = await self._redis.set(key, value, ex=ttl, nx=nx)
        return bool(result)

    @degradable(lambda: False, "CACHE.DEL")
    async def delete(self, *keys: str) -> bool:
        """Returns True if the command ran (whether or not keys existed)."""
        await self._redis.delete(*keys)
        return True

    @degradable(lambda: False, "CACHE.EXISTS")
    async def exists(self, key: str) -> bool:
        return await self._redis.exists(key) > 0

    @degradable(lambda: False, "CACHE.EXPIRE")
    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self._redis.expire(key, ttl))

    @degradable(lambda: -2, "CACHE.TTL")
    async def ttl(self, key: str) -> int:
        """TTL in seconds, -1 if no TTL, -2 if the key is absent (or skipped)."""
        return await self._redis.ttl(key)

    # -------------------------------------------------------------------------
    # Hash Operations
    # -------------------------------------------------------------------------

    @degradable(lambda: None, "CACHE.HGET")
    async def hget(self, name: str, field: str) -> str | None:
        return await self._redis.hget(name, field)

    @degradable(lambda: False, "CACHE.HSET")
    async def hset(self, name: str, field: str, value: str) -> bool:
        await self._redis.hset(name, field, value)
        return True

    @degradable(dict, "CACHE.HGETALL")
    async def hgetall(self, name: str) -> dict[str, str]:
        return await self._redis.hgetall(name)

    @degradable(lambda: None, "CACHE.HINCRBY")
    async def hincrby(self, name: str, field: str, amount: int = 1) -> int | None:
        return await self._redis.hincrby(name, field, amount)

    # -------------------------------------------------------------------------
    # Counter Operations
    # -------------------------------------------------------------------------

    @degradable(lambda: None, "CACHE.INCR")
    async def incr(self, key: str) -> int | None:
        return await self._redis.incr(key)

    @degradable(lambda: None, "CACHE.INCR_WINDOW")
    async def incr_window(self, key: str, window: int) -> tuple[int, int] | None:
        """
        Atomically increment a window counter.

        The first increment sets the expiry to `window` seconds, so the
        window is a rolling TTL started by its first request.

        Returns:
            (count, seconds_until_reset), or None if skipped/failed
        """
        count, ttl = await self._redis.eval(INCR_WINDOW_SCRIPT, 1, key, window)
        return int(count), int(ttl)

    # -------------------------------------------------------------------------
    # Set Operations
    # -------------------------------------------------------------------------

    @degradable(lambda: False, "CACHE.SADD")
    async def sadd(self, key: str, *members: str) -> bool:
        await self._redis.sadd(key, *members)
        return True

    @degradable(lambda: 0, "CACHE.SCARD")
    async def scard(self, key: str) -> int:
        return await self._redis.scard(key)

    # -------------------------------------------------------------------------
    # Bounded List Operations
    # -------------------------------------------------------------------------

    @degradable(lambda: None, "CACHE.PUSH")
    async def push(self, key: str, *values: str) -> int | None:
        """Push values to the head of a list. Returns the new length."""
        return await self._redis.lpush(key, *values)

    @degradable(lambda: False, "CACHE.TRIM")
    async def trim(self, key: str, max_len: int) -> bool:
        """Keep only the first max_len entries (the most recent pushes)."""
        return bool(await self._redis.ltrim(key, 0, max_len - 1))

    @degradable(list, "CACHE.RANGE")
    async def range(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        return await self._redis.lrange(key, start, stop)

    @degradable(lambda: False, "CACHE.PUSH_BOUNDED")
    async def push_bounded(
        self, key: str, value: str, max_len: int, ttl: int | None = None
    ) -> bool:
        """
        Push to the head of a list and trim it to max_len in one transaction.

        Caps memory and read cost: older entries beyond max_len are dropped.
        """
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.lpush(key, value)
            pipe.ltrim(key, 0, max_len - 1)
            if ttl:
                pipe.expire(key, ttl)
            await pipe.execute()
        return True

    # -------------------------------------------------------------------------
    # Conditional Operations
    # -------------------------------------------------------------------------

    @degradable(lambda: False, "CACHE.CAD")
    async def delete_if_equals(self, key: str, expected: str) -> bool:
        """
        Compare-and-delete: remove key only while it still holds `expected`.

        Returns:
            True if the key was deleted
        """
        deleted = await self._redis.eval(COMPARE_AND_DELETE_SCRIPT, 1, key, expected)
        return int(deleted) == 1
