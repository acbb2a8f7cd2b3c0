"""
Cache Infrastructure

Redis-backed cache facade with degraded-mode semantics.
"""

from narad.infrastructure.cache.redis_client import (
    COMPARE_AND_DELETE_SCRIPT,
    INCR_WINDOW_SCRIPT,
    RedisClient,
    RedisConnectionManager,
)

__all__ = [
    "COMPARE_AND_DELETE_SCRIPT",
    "INCR_WINDOW_SCRIPT",
    "RedisClient",
    "RedisConnectionManager",
]
