"""
Coordination Primitives

Distributed lock and fixed-window rate limiter, built only on cache facade
operations.
"""

from narad.coordination.distributed_lock import DistributedLock, LockHandle
from narad.coordination.rate_limiter import FixedWindowRateLimiter, RateLimitResult

__all__ = [
    "DistributedLock",
    "FixedWindowRateLimiter",
    "LockHandle",
    "RateLimitResult",
]
